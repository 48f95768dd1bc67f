"""Retrieve run information describing the samples to process.

Samples are discovered from paired FASTQ files at the top level of the input
directory. The first naming convention matching any R1 file is used for the
whole run.
"""
import collections
import os

import toolz as tz
import yaml

from wespipe import utils
from wespipe.distributed.transaction import file_transaction
from wespipe.log import logger
from wespipe.pipeline.errors import InputDiscoveryError

MANIFEST_NAME = "run_manifest.yaml"

Convention = collections.namedtuple("Convention", ["name", "r1", "r2"])

CONVENTIONS = [Convention("clean", "_1.clean.fastq.gz", "_2.clean.fastq.gz"),
               Convention("trimmed", "_1.trimmed.fastq.gz", "_2.trimmed.fastq.gz"),
               Convention("trimmed-uncompressed", "_1.trimmed.fastq", "_2.trimmed.fastq"),
               Convention("paired", "_1.fastq.gz", "_2.fastq.gz"),
               Convention("paired-uncompressed", "_1.fastq", "_2.fastq"),
               Convention("illumina", "_R1.fastq.gz", "_R2.fastq.gz")]

class Sample(object):
    """One sample's paired reads and its progress through the per-sample stages.
    """
    def __init__(self, name, fastq1, fastq2):
        self.name = name
        self.fastq1 = fastq1
        self.fastq2 = fastq2
        self.stage = None
        self.status = None
        self.failure = None
        self.cram = None
        self.gvcf = None

    def __repr__(self):
        return "Sample(%s, stage=%s, status=%s)" % (self.name, self.stage, self.status)

def _convention_samples(input_dir, convention):
    names = set()
    for fname in os.listdir(input_dir):
        full = os.path.join(input_dir, fname)
        if fname.endswith(convention.r1) and os.path.isfile(full):
            name = fname[:-len(convention.r1)]
            if name:
                names.add(name)
    return sorted(names)

def detect_convention(input_dir):
    """Find the first naming convention with at least one R1 file in input_dir.
    """
    if not input_dir or not os.path.isdir(input_dir):
        raise InputDiscoveryError("Input directory not found: %s" % input_dir)
    for convention in CONVENTIONS:
        names = _convention_samples(input_dir, convention)
        if names:
            return convention, names
    raise InputDiscoveryError("No paired FASTQ files recognized in %s. Supported suffixes: %s"
                              % (input_dir, ", ".join(c.r1 for c in CONVENTIONS)))

def resolve_samples(input_dir):
    """Discover samples in input_dir, returning the convention and ordered Samples.

    A missing R2 mate is not a discovery problem; the sample fails at alignment.
    """
    convention, names = detect_convention(input_dir)
    samples = [Sample(name, os.path.join(input_dir, name + convention.r1),
                      os.path.join(input_dir, name + convention.r2))
               for name in names]
    logger.info("Detected naming convention %s (%s/%s): %s samples"
                % (convention.name, convention.r1, convention.r2, len(samples)))
    return convention, samples

def select_sample(samples, name):
    """Restrict a run to exactly one named sample.
    """
    selected = [s for s in samples if s.name == name]
    if not selected:
        raise InputDiscoveryError("Sample %s not found among %s discovered samples"
                                  % (name, len(samples)))
    return selected[0]

def samples_from_manifest(manifest):
    """Rebuild Samples from a manifest without rescanning the input directory.
    """
    return [Sample(name, os.path.join(manifest["input_dir"], name + manifest["r1_suffix"]),
                   os.path.join(manifest["input_dir"], name + manifest["r2_suffix"]))
            for name in manifest["samples"]]

# ## Run manifest

def manifest_file(work_dir):
    return os.path.join(work_dir, MANIFEST_NAME)

def write_manifest(work_dir, samples, convention, input_dir, mode):
    """Write the ordered sample ids and execution mode before anything is dispatched.
    """
    out_file = manifest_file(utils.safe_makedir(work_dir))
    manifest = {"samples": [s.name for s in samples],
                "mode": mode,
                "convention": convention.name,
                "r1_suffix": convention.r1,
                "r2_suffix": convention.r2,
                "input_dir": os.path.abspath(input_dir)}
    with file_transaction(out_file) as tx_out_file:
        with open(tx_out_file, "w") as out_handle:
            yaml.safe_dump(manifest, out_handle, default_flow_style=False, allow_unicode=False)
    return out_file

def read_manifest(in_file):
    if not os.path.exists(in_file):
        raise InputDiscoveryError("Run manifest not found: %s" % in_file)
    with open(in_file) as in_handle:
        manifest = yaml.safe_load(in_handle)
    if not tz.get_in(["samples"], manifest):
        raise InputDiscoveryError("Run manifest %s lists no samples" % in_file)
    return manifest

# ## Run context

CONTEXT_NAME = "run_context.yaml"

def get_work_dir(config):
    """Directory holding the manifest, failure ledger and run context.

    Kept in the output directory so it survives temporary file cleanup.
    """
    return utils.safe_makedir(os.path.abspath(tz.get_in(["directories", "output"], config)))

def context_file(work_dir):
    return os.path.join(work_dir, CONTEXT_NAME)

def write_context(config, work_dir, manifest, ledger, scheduler=None, jobids=None):
    """Serialize everything an independently scheduled unit needs to run.

    Units receive the path to this file as an argument instead of reading
    ambient process state.
    """
    out_file = context_file(work_dir)
    context = {"config": config,
               "work_dir": os.path.abspath(work_dir),
               "manifest": os.path.abspath(manifest),
               "ledger": os.path.abspath(ledger),
               "scheduler": scheduler,
               "jobids": jobids or {}}
    with file_transaction(out_file) as tx_out_file:
        with open(tx_out_file, "w") as out_handle:
            yaml.safe_dump(context, out_handle, default_flow_style=False, allow_unicode=False)
    return out_file

def read_context(in_file):
    if not in_file or not os.path.exists(in_file):
        raise InputDiscoveryError("Run context not found: %s" % in_file)
    with open(in_file) as in_handle:
        context = yaml.safe_load(in_handle)
    for key in ["config", "work_dir", "manifest", "ledger"]:
        if not context or key not in context:
            raise InputDiscoveryError("Run context %s is missing %s" % (in_file, key))
    return context
