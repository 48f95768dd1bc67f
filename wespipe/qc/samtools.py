"""Quality control metrics from samtools.

Alignment statistics, per-contig coverage and mean depth over the whole
genome and over the target regions. None of these gate downstream results,
so failures are reported as warnings and never fail the sample.
"""
import os

from wespipe import utils
from wespipe.log import logger
from wespipe.pipeline import config_utils
from wespipe.pipeline.errors import StageError
from wespipe.provenance import do

def get_qc_dir(name, config):
    return utils.safe_makedir(os.path.join(config_utils.get_dir("output", config), "qc", name))

def run(name, in_bam, config, executor, out_dir=None):
    """Run flagstat, coverage and depth summaries, returning the files produced.
    """
    out_dir = out_dir or get_qc_dir(name, config)
    samtools = config_utils.get_program("samtools", config)
    bed_file = config_utils.get_target_bed(config)
    out = {}
    steps = [("flagstat", ["flagstat", in_bam], os.path.join(out_dir, "%s.flagstat.txt" % name)),
             ("coverage", ["coverage", in_bam], os.path.join(out_dir, "%s.coverage.txt" % name)),
             ("depth", ["depth", "-a", in_bam], os.path.join(out_dir, "%s.depth.txt" % name)),
             ("target_depth", ["depth", "-a", "-b", bed_file, in_bam],
              os.path.join(out_dir, "%s.target_depth.txt" % name))]
    for key, params, out_file in steps:
        try:
            do.run(executor, samtools, params, "QC", descr="samtools %s: %s" % (key, name),
                   stdout_file=out_file)
        except StageError as e:
            logger.warning("QC %s failed for %s, continuing: %s" % (key, name, e.reason))
            utils.remove_safe(out_file)
        else:
            out[key] = out_file
    summary = {}
    for key, label in [("depth", "whole_genome"), ("target_depth", "target")]:
        if key in out:
            summary[label] = mean_depth(out[key])
            # per-position depth is large and only needed for the mean
            utils.remove_safe(out[key])
            del out[key]
    if summary:
        out["depth_summary"] = _write_depth_summary(name, summary, out_dir)
    return out

def mean_depth(depth_file):
    """Mean of the depth column from `samtools depth` output, 0.0 when empty.
    """
    total = 0
    positions = 0
    with open(depth_file) as in_handle:
        for line in in_handle:
            parts = line.rstrip("\n").split("\t")
            if len(parts) < 3:
                continue
            try:
                total += int(parts[2])
            except ValueError:
                continue
            positions += 1
    return float(total) / positions if positions else 0.0

def _write_depth_summary(name, summary, out_dir):
    out_file = os.path.join(out_dir, "%s.mean_depth.txt" % name)
    with open(out_file, "w") as out_handle:
        for label in ["whole_genome", "target"]:
            if label in summary:
                out_handle.write("%s\t%.2f\n" % (label, summary[label]))
    for label, val in sorted(summary.items()):
        logger.info("%s mean depth (%s): %.2f" % (name, label, val))
    return out_file
