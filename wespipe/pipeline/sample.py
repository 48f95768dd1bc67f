"""Drive one sample from paired FASTQ files to an archived CRAM and a GVCF.

Stages run strictly in order and each declares the artifacts it reads and
writes. Inputs are checked before a stage runs and outputs after, so a tool
that exits cleanly but leaves an empty file still fails the sample. Temporary
artifacts live in the sample's own directory under the temp directory and are
removed as soon as the last stage reading them has finished, keeping the
per-sample footprint bounded regardless of cohort size.
"""
import collections
import os

from wespipe import bam, broad, log, utils
from wespipe.distributed.barrier import FAILED, SUCCEEDED
from wespipe.log import logger
from wespipe.ngsalign import bwa
from wespipe.pipeline import config_utils
from wespipe.pipeline.errors import StageError
from wespipe.provenance.do import CommandExecutor
from wespipe.qc import samtools as qc_samtools
from wespipe.variation import gatk, recalibrate

Stage = collections.namedtuple("Stage", ["name", "fn", "inputs", "outputs"])

STAGE_NAMES = ["Align", "FixMates", "Sort", "MarkDuplicates", "Index", "QC",
               "ConvertToArchiveFormat", "IndexArchive", "RecalibrateBuild",
               "RecalibrateApply", "CallVariants"]

def sample_work_dir(name, config):
    return os.path.join(config_utils.get_dir("temp", config), name)

def final_cram(name, config):
    return os.path.join(config_utils.get_dir("output", config), "cram", "%s.dedup.cram" % name)

def final_gvcf(name, config):
    return os.path.join(config_utils.get_dir("output", config), "gvcf", "%s.g.vcf.gz" % name)

def has_gvcf(name, config):
    return utils.file_exists(final_gvcf(name, config))

class PerSamplePipeline(object):
    """Run the ordered per-sample stages, reporting failures to the ledger.

    One instance can serve many samples concurrently: all per-sample state is
    held in the Sample and its artifact map.
    """
    def __init__(self, config, ledger, executor=None):
        self.config = config
        self.ledger = ledger
        self.executor = executor or CommandExecutor()
        self.broad_runner = broad.runner_from_config(config, self.executor)
        self.delete_temp = config_utils.delete_temp(config)
        self.stages = [Stage("Align", self._align, ["fastq1", "fastq2"], ["raw_bam"]),
                       Stage("FixMates", self._fixmates, ["raw_bam"], ["fixmate_bam"]),
                       Stage("Sort", self._sort, ["fixmate_bam"], ["sorted_bam"]),
                       Stage("MarkDuplicates", self._markdups, ["sorted_bam"],
                             ["dedup_bam", "dup_metrics"]),
                       Stage("Index", self._index, ["dedup_bam"], ["dedup_bai"]),
                       Stage("QC", self._qc, ["dedup_bam", "dedup_bai"], []),
                       Stage("ConvertToArchiveFormat", self._to_cram, ["dedup_bam"], ["cram"]),
                       Stage("IndexArchive", self._index_cram, ["cram"], ["crai"]),
                       Stage("RecalibrateBuild", self._prep_recal, ["dedup_bam", "dedup_bai"],
                             ["recal_table"]),
                       Stage("RecalibrateApply", self._apply_recal,
                             ["dedup_bam", "dedup_bai", "recal_table"], ["recal_bam"]),
                       Stage("CallVariants", self._call, ["recal_bam"], ["gvcf"])]
        assert [s.name for s in self.stages] == STAGE_NAMES

    # ## Artifact layout

    def artifacts(self, sample):
        work_dir = sample_work_dir(sample.name, self.config)
        qc_dir = os.path.join(config_utils.get_dir("output", self.config), "qc", sample.name)
        cram = final_cram(sample.name, self.config)
        base = os.path.join(work_dir, sample.name)
        return {"fastq1": sample.fastq1,
                "fastq2": sample.fastq2,
                "raw_bam": "%s.raw.bam" % base,
                "fixmate_bam": "%s.fixmate.bam" % base,
                "sorted_bam": "%s.sorted.bam" % base,
                "dedup_bam": "%s.dedup.bam" % base,
                "dedup_bai": "%s.dedup.bam.bai" % base,
                "dup_metrics": os.path.join(qc_dir, "%s.dup_metrics.txt" % sample.name),
                "cram": cram,
                "crai": cram + ".crai",
                "recal_table": "%s.recal.table" % base,
                "recal_bam": "%s.recal.bam" % base,
                "gvcf": final_gvcf(sample.name, self.config)}

    def temp_artifacts(self, artifacts, work_dir):
        prefix = os.path.abspath(work_dir) + os.sep
        return set(k for k, v in artifacts.items() if os.path.abspath(v).startswith(prefix))

    def last_consumers(self, temp_keys):
        """Map each stage name to the temporary artifacts it is the final reader of.
        """
        last = {}
        for stage in self.stages:
            for key in stage.inputs:
                if key in temp_keys:
                    last[key] = stage.name
        out = collections.defaultdict(list)
        for key, stage_name in last.items():
            out[stage_name].append(key)
        return out

    # ## Running

    def run(self, sample):
        """Process one sample, returning its terminal status.
        """
        prior = self.ledger.get(sample.name)
        if prior:
            logger.info("Skipping %s: already failed at %s" % (sample.name, prior.stage))
            sample.status = FAILED
            sample.failure = (prior.stage, prior.reason)
            return FAILED
        handler = log.sample_log_handler(self.config, sample.name)
        with handler:
            try:
                return self._run(sample)
            finally:
                handler.close()

    def _run(self, sample):
        logger.info("Processing sample %s" % sample.name)
        work_dir = utils.safe_makedir(sample_work_dir(sample.name, self.config))
        artifacts = self.artifacts(sample)
        for out_file in artifacts.values():
            utils.safe_makedir(os.path.dirname(out_file))
        to_delete = self.last_consumers(self.temp_artifacts(artifacts, work_dir))
        for stage in self.stages:
            sample.stage = stage.name
            try:
                self._check_files(stage, stage.inputs, artifacts, "input")
                logger.info("%s: %s" % (sample.name, stage.name))
                stage.fn(sample, artifacts, work_dir)
                self._check_files(stage, stage.outputs, artifacts, "output")
            except StageError as e:
                return self._fail(sample, e.stage, e.reason)
            for key in to_delete.get(stage.name, []):
                logger.debug("Removing intermediate %s" % artifacts[key])
                utils.remove_plus(artifacts[key])
        sample.cram = artifacts["cram"]
        sample.gvcf = artifacts["gvcf"]
        sample.status = SUCCEEDED
        self.ledger.record_success(sample.name)
        if self.delete_temp:
            utils.remove_safe(work_dir)
        logger.info("Finished sample %s" % sample.name)
        return SUCCEEDED

    def _fail(self, sample, stage, reason):
        logger.error("Sample %s failed at %s: %s" % (sample.name, stage, reason))
        self.ledger.record(sample.name, stage, reason)
        sample.status = FAILED
        sample.failure = (stage, reason)
        return FAILED

    def _check_files(self, stage, keys, artifacts, kind):
        for key in keys:
            if not utils.file_exists(artifacts[key]):
                raise StageError(stage.name, "missing or empty %s %s" % (kind, artifacts[key]))

    # ## Stages

    def _java_tmp(self, work_dir):
        return utils.safe_makedir(os.path.join(work_dir, "java_tmp"))

    def _align(self, sample, a, work_dir):
        bwa.align_pair(sample.name, a["fastq1"], a["fastq2"], a["raw_bam"], self.config,
                       self.executor)

    def _fixmates(self, sample, a, work_dir):
        self.broad_runner.run_fn("picard_fixmate", a["raw_bam"], a["fixmate_bam"],
                                 tmp_dir=self._java_tmp(work_dir))

    def _sort(self, sample, a, work_dir):
        self.broad_runner.run_fn("picard_sort", a["fixmate_bam"], a["sorted_bam"],
                                 tmp_dir=self._java_tmp(work_dir))

    def _markdups(self, sample, a, work_dir):
        self.broad_runner.run_fn("picard_mark_duplicates", a["sorted_bam"], a["dedup_bam"],
                                 a["dup_metrics"], tmp_dir=self._java_tmp(work_dir))

    def _index(self, sample, a, work_dir):
        bam.index(a["dedup_bam"], self.config, self.executor)

    def _qc(self, sample, a, work_dir):
        try:
            qc_samtools.run(sample.name, a["dedup_bam"], self.config, self.executor)
        except (IOError, OSError, ValueError) as e:
            logger.warning("QC failed for %s, continuing: %s" % (sample.name, e))

    def _to_cram(self, sample, a, work_dir):
        bam.bam_to_cram(a["dedup_bam"], a["cram"], self.config, self.executor)

    def _index_cram(self, sample, a, work_dir):
        bam.index(a["cram"], self.config, self.executor, stage="IndexArchive")

    def _prep_recal(self, sample, a, work_dir):
        recalibrate.prep_recal(self.broad_runner, sample.name, a["dedup_bam"], a["recal_table"],
                               self.config, tmp_dir=self._java_tmp(work_dir))

    def _apply_recal(self, sample, a, work_dir):
        recalibrate.apply_recal(self.broad_runner, sample.name, a["dedup_bam"], a["recal_table"],
                                a["recal_bam"], self.config, tmp_dir=self._java_tmp(work_dir))

    def _call(self, sample, a, work_dir):
        gatk.haplotype_caller(self.broad_runner, sample.name, a["recal_bam"], a["gvcf"],
                              self.config, tmp_dir=self._java_tmp(work_dir))
