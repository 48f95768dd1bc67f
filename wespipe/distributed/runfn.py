"""Entry points for independently scheduled units, driven by a serialized run context.

An array element processes the one sample its index selects from the run
manifest. The finalization job accounts for every manifest sample, releases
the barrier and runs the cohort stage.
"""
import os

from wespipe.distributed import cluster, multi
from wespipe.distributed.barrier import FAILED, SUCCEEDED, FinalizationBarrier
from wespipe.distributed.ledger import FailureLedger
from wespipe.log import logger
from wespipe.pipeline import cohort, run_info
from wespipe.pipeline.errors import InputDiscoveryError
from wespipe.pipeline.sample import PerSamplePipeline, has_gvcf

def _unit_sample(context, manifest, sample_name=None, environ=None):
    samples = run_info.samples_from_manifest(manifest)
    if sample_name:
        return run_info.select_sample(samples, sample_name)
    index = cluster.array_index(context["scheduler"], environ)
    if index < 0 or index >= len(samples):
        raise InputDiscoveryError("Array index %s outside of %s manifest samples" % (index, len(samples)))
    return samples[index]

def array_unit(context, sample_name=None, executor=None, environ=None):
    """Process one manifest sample, returning its terminal status.
    """
    config = context["config"]
    manifest = run_info.read_manifest(context["manifest"])
    sample = _unit_sample(context, manifest, sample_name, environ)
    logger.info("Array unit processing sample %s" % sample.name)
    pipeline = PerSamplePipeline(config, FailureLedger(context["ledger"]), executor)
    return multi.run_unit(pipeline, sample)

def unit_outcomes(names, config, ledger, require_marker=True):
    """Terminal status of each unit, from the ledger and the presence of its GVCF.

    With require_marker, a GVCF only counts when the unit also left a success
    marker in this run. A unit that ended without either, such as one killed
    by the scheduler, is recorded as failed.
    """
    barrier = FinalizationBarrier(len(names))
    for name in names:
        if ledger.contains(name):
            status = FAILED
        elif has_gvcf(name, config) and (ledger.succeeded(name) or not require_marker):
            status = SUCCEEDED
        else:
            ledger.record(name, "Unknown", "unit ended without a GVCF or a recorded failure")
            status = FAILED
        barrier.complete(name, status)
    assert barrier.released
    return barrier.outcomes()

def finalize(context, executor=None, include_existing=False):
    """Run the cohort stage over the samples listed in the run manifest.

    include_existing adds samples with a GVCF already in the output directory,
    for finalize-only runs started by hand, and trusts those GVCFs without a
    success marker.
    """
    config = context["config"]
    names = _finalize_names(context, include_existing)
    ledger = FailureLedger(context["ledger"])
    outcomes = unit_outcomes(names, config, ledger, require_marker=not include_existing)
    gvcfs = cohort.cohort_input_set(outcomes, config)
    return cohort.CohortPipeline(config, executor).run(gvcfs)

def _finalize_names(context, include_existing):
    names = set()
    if os.path.exists(context["manifest"]):
        names.update(run_info.read_manifest(context["manifest"])["samples"])
    gvcf_dir = os.path.join(context["config"]["directories"]["output"], "gvcf")
    if include_existing and os.path.isdir(gvcf_dir):
        names.update(f[:-len(".g.vcf.gz")] for f in os.listdir(gvcf_dir) if f.endswith(".g.vcf.gz"))
    return sorted(names)
