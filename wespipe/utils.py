"""Helpful utilities for building analysis pipelines.
"""
import os
import shutil
import time

import toolz as tz


def safe_makedir(dname):
    """Make a directory if it doesn't exist, handling concurrent race conditions.
    """
    if not dname:
        return dname
    num_tries = 0
    max_tries = 5
    while not os.path.exists(dname):
        # we could get an error here if multiple array jobs are creating
        # the directory at the same time on a shared filesystem.
        try:
            os.makedirs(dname)
        except OSError:
            if num_tries > max_tries:
                raise
            num_tries += 1
            time.sleep(2)
    return dname

def file_exists(fname):
    """Check if a file exists and is non-empty.
    """
    try:
        return bool(fname) and os.path.exists(fname) and os.path.getsize(fname) > 0
    except OSError:
        return False

def get_size(path):
    """ Returns the size in bytes if `path` is a file,
        or the size of all files in `path` if it's a directory.
    """
    if os.path.isfile(path):
        return os.path.getsize(path)
    return sum(get_size(os.path.join(path, f)) for f in os.listdir(path))

def splitext_plus(f):
    """Split on file extensions, allowing for zipped extensions.
    """
    base, ext = os.path.splitext(f)
    if ext in [".gz", ".bz2", ".zip"]:
        base, ext2 = os.path.splitext(base)
        ext = ext2 + ext
    return base, ext

def remove_safe(f):
    try:
        if os.path.isdir(f):
            shutil.rmtree(f)
        else:
            os.remove(f)
    except OSError:
        pass

def file_plus_index(fname):
    """Convert a file name into the file plus required indexes.
    """
    exts = {".bam": ".bai", ".cram": ".crai", ".vcf.gz": ".tbi", ".vcf": ".idx"}
    ext = splitext_plus(fname)[-1]
    if ext in exts:
        return [fname, fname + exts[ext]]
    else:
        return [fname]

def remove_plus(orig):
    """Remove a file, including biological index files.
    """
    for fname in file_plus_index(orig):
        if os.path.exists(fname):
            remove_safe(fname)
    # Picard writes BAM indexes as sample.bai instead of sample.bam.bai
    base, ext = splitext_plus(orig)
    if ext == ".bam" and os.path.exists(base + ".bai"):
        remove_safe(base + ".bai")

def symlink_plus(orig, new):
    """Create symlinks for a file plus associated fasta indexes.
    """
    orig = os.path.abspath(orig)
    if not os.path.exists(orig):
        raise RuntimeError("File not found: %s" % orig)
    for ext in ["", ".fai"]:
        if os.path.exists(orig + ext):
            remove_safe(new + ext)
            os.symlink(orig + ext, new + ext)

def get_in(d, t, default=None):
    """Look up the nested key path `t` in dictionary `d`, returning default if missing.
    """
    return tz.get_in(t, d, default)

