"""GATK variant calling -- HaplotypeCaller in GVCF mode.
"""
from wespipe.pipeline import config_utils

ANNOTATIONS = ["AlleleFraction", "DepthPerAlleleBySample", "Coverage", "FisherStrand",
               "MappingQualityRankSumTest", "QualByDepth", "ReadPosRankSumTest",
               "RMSMappingQuality", "StrandOddsRatio", "InbreedingCoeff"]

def _add_annotations(params):
    for a in ANNOTATIONS:
        params += ["-A", a]
    return params

def haplotype_caller(broad_runner, name, in_bam, out_file, config, tmp_dir=None,
                     stage="CallVariants"):
    """Call variants for one sample into a per-sample GVCF over the target regions.
    """
    params = ["-R", config_utils.get_ref_file(config),
              "-I", in_bam,
              "-O", out_file,
              "-ERC", "GVCF",
              "--sample-name", name,
              "-L", config_utils.get_target_bed(config)]
    params = _add_annotations(params)
    broad_runner.run_gatk("HaplotypeCaller", params, stage, tmp_dir)
    return out_file
