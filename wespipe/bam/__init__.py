"""Functionality to manage alignment files with samtools.
"""
from wespipe import utils
from wespipe.pipeline import config_utils
from wespipe.provenance import do

def _samtools(config):
    return config_utils.get_program("samtools", config)

def sam_to_bam(in_sam, out_bam, config, executor, stage="Align"):
    """Convert SAM text output into a BAM file.
    """
    num_cores = config_utils.get_threads(config)
    do.run(executor, _samtools(config), ["view", "-Shb", "-@", num_cores, "-o", out_bam, in_sam],
           stage, descr="Convert SAM to BAM: %s" % out_bam)
    return out_bam

def index(in_bam, config, executor, stage="Index"):
    """Index a BAM or CRAM file, returning the index file name.
    """
    num_cores = config_utils.get_threads(config)
    if in_bam.endswith(".cram"):
        params = ["index", in_bam]
    else:
        params = ["index", "-@", num_cores, in_bam]
    do.run(executor, _samtools(config), params, stage, descr="Index %s" % in_bam)
    return utils.file_plus_index(in_bam)[-1]

def bam_to_cram(in_bam, out_cram, config, executor, stage="ConvertToArchiveFormat"):
    """Convert a BAM file into reference compressed CRAM for archiving.
    """
    num_cores = config_utils.get_threads(config)
    do.run(executor, _samtools(config),
           ["view", "-C", "-T", config_utils.get_ref_file(config), "-@", num_cores,
            "-o", out_cram, in_bam],
           stage, descr="Convert to CRAM: %s" % out_cram)
    return out_cram
