#!/usr/bin/env python

"""Setup file and install script for whole exome sequencing pipelines"""

import os
import subprocess

import setuptools

VERSION = '0.3.0'

# add version number and git commit hash of the current revision to version.py
try:
    git_run = subprocess.run(['git', 'rev-parse', '--short', 'HEAD'], stdout=subprocess.PIPE,
                             stderr=subprocess.DEVNULL)
    git_run.check_returncode()
except (subprocess.SubprocessError, OSError):
    commit_hash = ''
else:
    commit_hash = git_run.stdout.strip().decode()

here = os.path.dirname(os.path.abspath(__file__))
with open(os.path.join(here, 'wespipe', 'pipeline', 'version.py'), 'w') as version_file:
    version_file.writelines([f'__version__ = "{VERSION}"\n',
                             f'__git_revision__ = "{commit_hash}"\n'])

# bwa, samtools, java, Picard and GATK4 are external tools installed separately
setuptools.setup(name='wespipe',
                 version=VERSION,
                 description='Whole exome sequencing pipeline: alignment, GVCF calling and joint genotyping',
                 packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
                 scripts=['scripts/wespipe_nextgen.py'],
                 entry_points={'console_scripts': ['wespipe = wespipe.cli:main']},
                 python_requires='>=3.6',
                 install_requires=['logbook', 'toolz', 'PyYAML', 'joblib'],
                 extras_require={'test': ['pytest', 'mock', 'pytest-mock']})
