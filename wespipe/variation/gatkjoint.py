"""Joint genotyping of per-sample GVCFs with GATK4.
"""
from wespipe.pipeline import config_utils

def combine_gvcfs(broad_runner, gvcfs, out_file, config, tmp_dir=None, stage="CombineGVCFs"):
    """Combine per-sample GVCFs into a single multi-sample GVCF.
    """
    params = ["-R", config_utils.get_ref_file(config)]
    for gvcf in gvcfs:
        params += ["-V", gvcf]
    params += ["-O", out_file]
    broad_runner.run_gatk("CombineGVCFs", params, stage, tmp_dir)
    return out_file

def genotype_gvcfs(broad_runner, in_file, out_file, config, tmp_dir=None, stage="GenotypeGVCFs"):
    params = ["-R", config_utils.get_ref_file(config),
              "-V", in_file,
              "-O", out_file]
    broad_runner.run_gatk("GenotypeGVCFs", params, stage, tmp_dir)
    return out_file
