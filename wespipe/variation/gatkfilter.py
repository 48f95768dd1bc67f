"""Variant quality score recalibration (VQSR) of joint called variants with GATK4.

SNPs are recalibrated first and the INDEL model is applied to the SNP filtered
output, so the final file carries both filters.
"""
from wespipe.pipeline import config_utils

SNP_TRANCHES = ["100.0", "99.8", "99.6", "99.4", "99.2", "99.0", "95.0", "90.0"]
INDEL_TRANCHES = ["100.0", "99.0", "95.0", "92.0", "90.0"]

SENSITIVITY = {"SNP": "99.80", "INDEL": "99.0"}

def _get_training_data(config):
    """Resource files with their known/training/truth flags and priors per variant class.
    """
    def res(name):
        return config_utils.get_resource_file("vqsr_resources", name, config)
    return {"SNP": [("hapmap", "known=false,training=true,truth=true,prior=15.0", res("hapmap")),
                    ("omni", "known=false,training=true,truth=true,prior=12.0", res("omni")),
                    ("1000G", "known=false,training=true,truth=false,prior=10.0", res("kg_snps")),
                    ("dbsnp", "known=true,training=false,truth=false,prior=2.0", res("dbsnp"))],
            "INDEL": [("mills", "known=true,training=true,truth=true,prior=12.0", res("mills")),
                      ("dbsnp", "known=true,training=false,truth=false,prior=2.0", res("dbsnp"))]}

def _get_vqsr_training(filter_type, config):
    params = []
    for name, train_info, fname in _get_training_data(config)[filter_type]:
        params.extend(["--resource:%s,%s" % (name, train_info), fname])
    if filter_type == "INDEL":
        params.extend(["--max-gaussians", "4"])
    return params

def _get_vqsr_annotations(filter_type):
    """Retrieve appropriate annotations to use for VQSR based on filter type.
    """
    if filter_type == "SNP":
        return ["QD", "MQ", "FS", "MQRankSum", "ReadPosRankSum", "SOR"]
    else:
        assert filter_type == "INDEL"
        return ["QD", "FS", "ReadPosRankSum", "MQRankSum", "SOR"]

def run_vqsr(broad_runner, in_file, recal_file, tranches_file, filter_type, config,
             tmp_dir=None, stage=None):
    """Build a variant recalibration model for one variant class.
    """
    params = ["-R", config_utils.get_ref_file(config),
              "-V", in_file,
              "--mode", filter_type,
              "-O", recal_file,
              "--tranches-file", tranches_file]
    params += _get_vqsr_training(filter_type, config)
    for a in _get_vqsr_annotations(filter_type):
        params += ["-an", a]
    for cutoff in SNP_TRANCHES if filter_type == "SNP" else INDEL_TRANCHES:
        params += ["-tranche", cutoff]
    if filter_type == "SNP":
        params += ["--dont-run-rscript"]
    broad_runner.run_gatk("VariantRecalibrator", params, stage or "VariantRecalibrator%s" % filter_type,
                          tmp_dir)
    return recal_file, tranches_file

def apply_vqsr(broad_runner, in_file, recal_file, tranches_file, out_file, filter_type, config,
               tmp_dir=None, stage=None):
    """Apply VQSR based on the variant class sensitivity, returning a filtered VCF file.
    """
    params = ["-R", config_utils.get_ref_file(config),
              "-V", in_file,
              "-O", out_file,
              "--recal-file", recal_file,
              "--tranches-file", tranches_file,
              "--truth-sensitivity-filter-level", SENSITIVITY[filter_type],
              "--mode", filter_type]
    broad_runner.run_gatk("ApplyVQSR", params, stage or "ApplyVQSR%s" % filter_type, tmp_dir)
    return out_file
