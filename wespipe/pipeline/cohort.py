"""Joint genotyping and variant quality score recalibration across the cohort.

Runs once, after every per-sample unit has reached a terminal state, over the
GVCFs of the samples that succeeded. Reads per-sample outputs only.
"""
import os

from wespipe import broad, utils
from wespipe.distributed.barrier import SUCCEEDED
from wespipe.log import logger
from wespipe.pipeline import config_utils
from wespipe.pipeline.errors import BarrierUnsatisfiableError, CohortStageError, StageError
from wespipe.pipeline.sample import final_gvcf
from wespipe.provenance.do import CommandExecutor
from wespipe.variation import gatkfilter, gatkjoint

def cohort_input_set(outcomes, config):
    """GVCFs of succeeded samples, in sample order.

    outcomes maps sample name to terminal status. Raises
    BarrierUnsatisfiableError when no sample produced a usable GVCF.
    """
    names = sorted(outcomes.keys())
    gvcfs = [final_gvcf(n, config) for n in names
             if outcomes[n] == SUCCEEDED and utils.file_exists(final_gvcf(n, config))]
    failed = len(names) - len(gvcfs)
    logger.info("Cohort input: %s of %s samples succeeded, %s failed" % (len(gvcfs), len(names), failed))
    if not gvcfs:
        raise BarrierUnsatisfiableError("All %s samples failed; no per-sample GVCFs available "
                                        "for joint genotyping" % len(names))
    return gvcfs

def final_vcf(config):
    return os.path.join(config_utils.get_dir("output", config), "vcf",
                        "%s.final_filtered.vcf.gz" % config["project_name"])

class CohortPipeline(object):
    """Combine, genotype and filter per-sample GVCFs into the final cohort call set.
    """
    def __init__(self, config, executor=None):
        self.config = config
        self.executor = executor or CommandExecutor()
        self.broad_runner = broad.runner_from_config(config, self.executor)
        self.work_dir = os.path.join(config_utils.get_dir("temp", config), "cohort")

    def _files(self):
        base = os.path.join(self.work_dir, self.config["project_name"])
        return {"combined": "%s.combined.g.vcf.gz" % base,
                "joint": "%s.joint.vcf.gz" % base,
                "snp_recal": "%s.snp.recal.vcf.gz" % base,
                "snp_tranches": "%s.snp.tranches" % base,
                "indel_recal": "%s.indel.recal.vcf.gz" % base,
                "indel_tranches": "%s.indel.tranches" % base,
                "snp_filtered": "%s.snp_filtered.vcf.gz" % base,
                "final": final_vcf(self.config)}

    def _step(self, name, fn, outputs):
        logger.info("Cohort stage: %s" % name)
        try:
            fn()
        except StageError as e:
            raise CohortStageError("%s failed: %s" % (name, e.reason))
        for out_file in outputs:
            if not utils.file_exists(out_file):
                raise CohortStageError("%s failed: missing or empty output %s" % (name, out_file))

    def run(self, gvcfs):
        """Run joint calling and filtering, returning the final filtered VCF.
        """
        for gvcf in gvcfs:
            if not utils.file_exists(gvcf):
                raise CohortStageError("CombineGVCFs failed: missing or empty input %s" % gvcf)
        f = self._files()
        tmp_dir = utils.safe_makedir(os.path.join(self.work_dir, "java_tmp"))
        utils.safe_makedir(os.path.dirname(f["final"]))
        br, config = self.broad_runner, self.config
        self._step("CombineGVCFs",
                   lambda: gatkjoint.combine_gvcfs(br, gvcfs, f["combined"], config, tmp_dir),
                   [f["combined"]])
        self._step("GenotypeGVCFs",
                   lambda: gatkjoint.genotype_gvcfs(br, f["combined"], f["joint"], config, tmp_dir),
                   [f["joint"]])
        self._step("VariantRecalibratorSNP",
                   lambda: gatkfilter.run_vqsr(br, f["joint"], f["snp_recal"], f["snp_tranches"],
                                               "SNP", config, tmp_dir),
                   [f["snp_recal"], f["snp_tranches"]])
        self._step("VariantRecalibratorINDEL",
                   lambda: gatkfilter.run_vqsr(br, f["joint"], f["indel_recal"], f["indel_tranches"],
                                               "INDEL", config, tmp_dir),
                   [f["indel_recal"], f["indel_tranches"]])
        self._step("ApplyVQSRSNP",
                   lambda: gatkfilter.apply_vqsr(br, f["joint"], f["snp_recal"], f["snp_tranches"],
                                                 f["snp_filtered"], "SNP", config, tmp_dir),
                   [f["snp_filtered"]])
        # INDEL filtering reads the SNP filtered calls
        self._step("ApplyVQSRINDEL",
                   lambda: gatkfilter.apply_vqsr(br, f["snp_filtered"], f["indel_recal"],
                                                 f["indel_tranches"], f["final"], "INDEL", config,
                                                 tmp_dir),
                   [f["final"]])
        self._count_variants(f["final"], tmp_dir)
        self._link_reference()
        if config_utils.delete_temp(config):
            utils.remove_safe(self.work_dir)
        logger.info("Final cohort call set: %s" % f["final"])
        return f["final"]

    def _count_variants(self, in_file, tmp_dir):
        out_file = "%s.variant_count.txt" % utils.splitext_plus(in_file)[0]
        try:
            self.broad_runner.run_gatk("CountVariants", ["-V", in_file, "-O", out_file],
                                       "CountVariants", tmp_dir)
        except StageError as e:
            logger.warning("Could not count final variants: %s" % e.reason)
            return None
        return out_file

    def _link_reference(self):
        """Place the reference next to the CRAMs so they can be decoded.
        """
        ref_file = config_utils.get_ref_file(self.config)
        cram_dir = utils.safe_makedir(os.path.join(config_utils.get_dir("output", self.config), "cram"))
        try:
            utils.symlink_plus(ref_file, os.path.join(cram_dir, os.path.basename(ref_file)))
        except (OSError, RuntimeError) as e:
            logger.warning("Could not link reference into %s: %s" % (cram_dir, e))
