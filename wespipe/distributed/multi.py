"""Run per-sample pipelines in parallel on a single machine.

A bounded pool of threads: up to batch_size samples are processed at once
and the rest queue until a slot frees. The external tools do the heavy work
in their own processes, so threads only wait on them.
"""
import joblib

from wespipe.distributed import ExecutionUnit
from wespipe.distributed.barrier import FAILED
from wespipe.log import logger

def run_unit(pipeline, sample, barrier=None):
    """Process one sample, converting unexpected errors into a ledgered failure.

    Siblings in the pool never see another unit's exception.
    """
    try:
        status = pipeline.run(sample)
    except Exception as e:
        logger.exception("Unexpected error processing %s" % sample.name)
        pipeline.ledger.record(sample.name, sample.stage or "Unknown",
                               "unexpected error: %s: %s" % (e.__class__.__name__, e))
        sample.status = FAILED
        status = FAILED
    if barrier is not None:
        barrier.complete(sample.name, status)
    return status

def runner(parallel, pipeline, barrier=None):
    """Retrieve a dispatch function running samples through `pipeline` in a thread pool.
    """
    num_jobs = max(1, int(parallel.get("batch_size", 1)))

    def dispatch(samples):
        if len(samples) == 0:
            return []
        logger.info("Processing %s samples with %s concurrent workers" % (len(samples), num_jobs))
        statuses = joblib.Parallel(n_jobs=num_jobs, backend="threading", batch_size=1)(
            joblib.delayed(run_unit)(pipeline, s, barrier) for s in samples)
        return [ExecutionUnit(s.name, "local", i, status)
                for i, (s, status) in enumerate(zip(samples, statuses))]
    return dispatch
