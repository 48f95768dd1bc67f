"""Pytest fixtures and test helper functions"""
import os
import threading

import pytest
import yaml

from wespipe.pipeline import config_utils
from wespipe.provenance.do import CommandResult

# Arguments followed by a file the command writes
OUTPUT_FLAGS = ["-o", "-O", "--output", "--tranches-file"]
# Picard style KEY=file outputs
OUTPUT_KEYS = ["O=", "M="]

def command_name(tool, args):
    """Short name of a command: the Picard/GATK tool, or program plus subcommand.
    """
    args = [str(x) for x in args]
    prog = os.path.basename(str(tool))
    if "-jar" in args:
        return args[args.index("-jar") + 2]
    if prog == "samtools" and args:
        return "samtools %s" % args[0]
    if prog == "bwa" and args:
        return "bwa %s" % args[0]
    return prog

def mentions_sample(args, sample):
    for a in args:
        base = os.path.basename(str(a))
        if base.startswith(sample + ".") or base.startswith(sample + "_"):
            return True
    return False

class StubExecutor(object):
    """Stand in for the external tools, writing every output a command names.

    fail_when(tool, args) returning True makes that command exit with code 1
    without writing anything. on_call(name, args) runs before each command.
    """
    def __init__(self, fail_when=None, on_call=None, empty_outputs=None):
        self.calls = []
        self.fail_when = fail_when
        self.on_call = on_call
        self.empty_outputs = empty_outputs or []
        self._lock = threading.Lock()

    def names(self):
        return [c[0] for c in self.calls]

    def calls_for(self, name):
        return [c for c in self.calls if c[0] == name]

    def execute(self, tool, args, working_dir=None, stdout_file=None, descr=None):
        args = [str(x) for x in args]
        name = command_name(tool, args)
        with self._lock:
            self.calls.append((name, args, stdout_file))
        if self.on_call:
            self.on_call(name, args)
        if self.fail_when and self.fail_when(tool, args):
            return CommandResult(1, "simulated %s failure\n" % name)
        for out_file in self._outputs(name, args, stdout_file):
            _touch(out_file, empty=name in self.empty_outputs)
        return CommandResult(0, "")

    def _outputs(self, name, args, stdout_file):
        out = []
        if stdout_file:
            out.append(stdout_file)
        for i, a in enumerate(args[:-1]):
            if a in OUTPUT_FLAGS:
                out.append(args[i + 1])
        for a in args:
            for key in OUTPUT_KEYS:
                if a.startswith(key):
                    out.append(a[len(key):])
        if name == "samtools index":
            target = args[-1]
            out.append(target + (".crai" if target.endswith(".cram") else ".bai"))
        return out

def _touch(fname, empty=False):
    if os.path.dirname(fname) and not os.path.exists(os.path.dirname(fname)):
        os.makedirs(os.path.dirname(fname))
    with open(fname, "w") as out_handle:
        if not empty:
            out_handle.write("chr1\t1\t30\nchr1\t2\t10\n")

def make_fastqs(input_dir, names, r1="_1.fastq.gz", r2="_2.fastq.gz"):
    if not os.path.exists(input_dir):
        os.makedirs(input_dir)
    for name in names:
        for suffix in [r1, r2]:
            if suffix:
                _touch(os.path.join(input_dir, name + suffix))

@pytest.fixture
def stub_executor():
    return StubExecutor()

@pytest.fixture
def config_file(tmp_path):
    """Configuration pointing at a temporary tree of reference, resource and tool files.
    """
    base = str(tmp_path)
    ref_dir = os.path.join(base, "ref")
    tool_dir = os.path.join(base, "tools")
    files = {"fasta": os.path.join(ref_dir, "genome.fa"),
             "bed": os.path.join(ref_dir, "targets.bed"),
             "snps": os.path.join(ref_dir, "dbsnp_known.vcf.gz"),
             "indels": os.path.join(ref_dir, "mills_known.vcf.gz"),
             "hapmap": os.path.join(ref_dir, "hapmap.vcf.gz"),
             "omni": os.path.join(ref_dir, "omni.vcf.gz"),
             "kg_snps": os.path.join(ref_dir, "1000G.vcf.gz"),
             "dbsnp": os.path.join(ref_dir, "dbsnp.vcf.gz"),
             "mills": os.path.join(ref_dir, "mills.vcf.gz")}
    for fname in list(files.values()) + [files["fasta"] + ".fai",
                                         os.path.join(tool_dir, "picard-2.27.jar"),
                                         os.path.join(tool_dir, "gatk-package-4.2.6.1-local.jar")]:
        _touch(fname)
    config = {"project_name": "cohort_test",
              "directories": {"input": os.path.join(base, "input"),
                              "output": os.path.join(base, "output"),
                              "temp": os.path.join(base, "temp")},
              "processing": {"batch_size": 2, "threads": 4, "memory_gb": 8, "jvm_memory_gb": 6},
              "reference": {"fasta": files["fasta"], "bed": files["bed"]},
              "known_sites": {"snps": files["snps"], "indels": files["indels"]},
              "vqsr_resources": dict((k, files[k]) for k in ["hapmap", "omni", "kg_snps",
                                                             "dbsnp", "mills"]),
              "tools": {"bwa": "bwa", "samtools": "samtools", "java": "java",
                        "picard": os.path.join(tool_dir, "picard*.jar"),
                        "gatk": os.path.join(tool_dir, "gatk-package-*-local.jar")},
              "cluster": {"scheduler": "pbspro", "queue": "cpu", "walltime": "24:00:00"}}
    os.makedirs(config["directories"]["input"])
    out_file = os.path.join(base, "wes_config.yaml")
    with open(out_file, "w") as out_handle:
        yaml.safe_dump(config, out_handle, default_flow_style=False)
    return out_file

@pytest.fixture
def config(config_file):
    return config_utils.load_config(config_file)

@pytest.fixture
def input_dir(config):
    return config["directories"]["input"]

@pytest.fixture
def fastqs():
    """Function writing paired FASTQ files: fastqs(input_dir, names, r1, r2)."""
    return make_fastqs

@pytest.fixture
def executor_factory():
    return StubExecutor
