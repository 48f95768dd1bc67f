"""Generalized running of per-sample units in multiple environments.
"""
import contextlib

from wespipe.distributed import cluster, multi
from wespipe.log import logger
from wespipe.pipeline.errors import DispatchError
from wespipe.pipeline.sample import PerSamplePipeline

@contextlib.contextmanager
def start(parallel, config, ledger, barrier=None, executor=None, context_file=None, on_submit=None):
    """Start the execution backend for a run.

    Yields a `dispatch(samples) -> [ExecutionUnit]` function. Local runs process
    samples in a bounded thread pool, completing `barrier` as each unit
    finishes. Cluster runs submit an array job plus a dependent finalization
    job described by `context_file`.
    """
    if parallel["type"] == "cluster":
        if not context_file:
            raise DispatchError("Cluster runs need a run context for array units")
        logger.info("Dispatching to %s scheduler" % parallel["scheduler"])
        yield cluster.runner(parallel, config, context_file, on_submit=on_submit)
    elif parallel["type"] == "local":
        pipeline = PerSamplePipeline(config, ledger, executor)
        yield multi.runner(parallel, pipeline, barrier)
    else:
        raise DispatchError("Unsupported parallel type: %s" % parallel["type"])
