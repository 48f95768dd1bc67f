"""Next-gen alignments with BWA (http://bio-bwa.sourceforge.net/)
"""
import os

import toolz as tz

from wespipe import utils
from wespipe.bam import sam_to_bam
from wespipe.pipeline import config_utils
from wespipe.pipeline.errors import StageError
from wespipe.provenance import do

def get_rg_info(name):
    """Read group line for a sample; bwa expands the escaped tabs itself.
    """
    return r"@RG\tID:{0}\tSM:{0}\tPL:ILLUMINA\tLB:{0}_lib".format(name)

def _get_bwa_mem_cmd(name, fastq1, fastq2, config):
    num_cores = config_utils.get_threads(config)
    chunk_size = tz.get_in(["bwa", "chunk_size"], config)
    return ["mem", "-Y", "-K", chunk_size, "-t", num_cores, "-R", get_rg_info(name),
            config_utils.get_ref_file(config), fastq1, fastq2]

def align_pair(name, fastq1, fastq2, out_bam, config, executor, stage="Align"):
    """Align paired reads with bwa mem, converting the SAM output to an unsorted BAM.

    The intermediate SAM only lives for the duration of this call.
    """
    bwa = config_utils.get_program("bwa", config)
    sam_file = "%s.sam" % utils.splitext_plus(out_bam)[0]
    do.run(executor, bwa, _get_bwa_mem_cmd(name, fastq1, fastq2, config), stage,
           descr="bwa mem alignment: %s" % name, stdout_file=sam_file)
    if not utils.file_exists(sam_file):
        raise StageError(stage, "bwa mem produced no alignments: %s" % os.path.basename(sam_file))
    try:
        sam_to_bam(sam_file, out_bam, config, executor, stage)
    finally:
        utils.remove_safe(sam_file)
    return out_bam
