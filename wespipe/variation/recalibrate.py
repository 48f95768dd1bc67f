"""Perform quality score recalibration with the GATK toolkit.

Corrects read quality scores post-alignment to provide improved estimates of
error rates based on alignments to the reference genome.

https://gatk.broadinstitute.org/hc/en-us/articles/360035890531
"""
from wespipe.log import logger
from wespipe.pipeline import config_utils

def prep_recal(broad_runner, name, in_bam, out_table, config, tmp_dir=None,
               stage="RecalibrateBuild"):
    """Do pre-BQSR recalibration, calculation of recalibration tables.
    """
    logger.info("Prepare BQSR tables with GATK: %s" % name)
    params = ["-R", config_utils.get_ref_file(config),
              "-I", in_bam,
              "--known-sites", config_utils.get_resource_file("known_sites", "snps", config),
              "--known-sites", config_utils.get_resource_file("known_sites", "indels", config),
              "-L", config_utils.get_target_bed(config),
              "--preserve-qscores-less-than", "6",
              "-O", out_table]
    broad_runner.run_gatk("BaseRecalibrator", params, stage, tmp_dir)
    return out_table

def apply_recal(broad_runner, name, in_bam, recal_table, out_bam, config, tmp_dir=None,
                stage="RecalibrateApply"):
    """Apply recalibration tables to the deduplicated BAM, producing recalibrated BAM.
    """
    logger.info("Applying BQSR recalibration with GATK: %s" % name)
    params = ["-R", config_utils.get_ref_file(config),
              "-I", in_bam,
              "--bqsr-recal-file", recal_table,
              "--preserve-qscores-less-than", "6",
              "--static-quantized-quals", "10",
              "--static-quantized-quals", "20",
              "--static-quantized-quals", "30",
              "-O", out_bam]
    broad_runner.run_gatk("ApplyBQSR", params, stage, tmp_dir)
    return out_bam
