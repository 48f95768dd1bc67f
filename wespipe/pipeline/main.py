"""Main entry point for whole exome runs on a single machine or a cluster.

Handles running the full pipeline based on command line options:

  - full run: discover samples, process each, then run the cohort stage
  - single sample: process exactly one named sample, no cohort stage
  - finalize only: run the cohort stage on per-sample outputs already present
  - unit entry points: array elements and the finalization job on a cluster
"""
from wespipe import log, utils
from wespipe.distributed import cluster, multi, prun, runfn
from wespipe.distributed.barrier import SUCCEEDED, FinalizationBarrier
from wespipe.distributed.ledger import FailureLedger, ledger_file
from wespipe.log import logger
from wespipe.pipeline import cohort, config_utils, run_info
from wespipe.pipeline.errors import InputDiscoveryError, WespipeError
from wespipe.pipeline.sample import PerSamplePipeline, final_gvcf

def run_main(config_file=None, parallel=None, sample=None, finalize_only=False,
             context_file=None, array_unit=False, status=False, executor=None):
    """Run the pipeline in the selected mode, returning the process exit code.

    Fatal problems raise WespipeError subclasses. Per-sample failures are only
    visible in the failure ledger and logs, except for a single sample run.
    """
    try:
        if context_file:
            context = run_info.read_context(context_file)
            config = context["config"]
        else:
            context = None
            config = config_utils.load_config(config_file)
        if parallel is None:
            parallel = {"type": "local", "batch_size": config_utils.get_batch_size(config)}
    except WespipeError as e:
        log_fatal(e)
        raise
    handler = log.setup_local_logging(config)
    try:
        if status:
            return _report_status(config, context)
        config_utils.check_required_files(config)
        if context:
            return _run_from_context(context, sample, finalize_only, array_unit, executor)
        elif finalize_only:
            _run_finalize(config, executor)
            return 0
        elif sample:
            return _run_single_sample(config, sample, executor)
        else:
            return _run_toplevel(config, parallel, executor)
    except WespipeError as e:
        log_fatal(e)
        raise
    finally:
        handler.pop_application()
        handler.close()

def log_fatal(e):
    logger.error("%s: %s" % (e.__class__.__name__, e))

def _exit_code(status):
    return 0 if status == SUCCEEDED else 1

def _run_from_context(context, sample, finalize_only, array_unit, executor):
    """Entry points for units submitted to a cluster scheduler.
    """
    if finalize_only:
        runfn.finalize(context, executor)
        return 0
    elif array_unit or sample:
        return _exit_code(runfn.array_unit(context, sample_name=sample, executor=executor))
    else:
        raise InputDiscoveryError("A run context needs --array-unit, --sample or --finalize-only")

def _run_single_sample(config, name, executor):
    input_dir = config_utils.get_dir("input", config)
    _, samples = run_info.resolve_samples(input_dir)
    sample = run_info.select_sample(samples, name)
    work_dir = run_info.get_work_dir(config)
    pipeline = PerSamplePipeline(config, FailureLedger(ledger_file(work_dir)), executor)
    return _exit_code(multi.run_unit(pipeline, sample))

def _run_finalize(config, executor):
    work_dir = run_info.get_work_dir(config)
    context = {"config": config,
               "work_dir": work_dir,
               "manifest": run_info.manifest_file(work_dir),
               "ledger": ledger_file(work_dir)}
    return runfn.finalize(context, executor, include_existing=True)

def _run_toplevel(config, parallel, executor):
    """Discover samples, dispatch one unit per sample, then finalize the cohort.
    """
    input_dir = config_utils.get_dir("input", config)
    convention, samples = run_info.resolve_samples(input_dir)
    work_dir = run_info.get_work_dir(config)
    manifest = run_info.write_manifest(work_dir, samples, convention, input_dir, parallel["type"])
    ledger = FailureLedger(ledger_file(work_dir))
    ledger.reset()
    for s in samples:
        utils.remove_plus(final_gvcf(s.name, config))
    if parallel["type"] == "cluster":
        return _submit_cluster(config, parallel, samples, work_dir, manifest, ledger)
    barrier = FinalizationBarrier(len(samples))
    with prun.start(parallel, config, ledger, barrier=barrier, executor=executor) as dispatch:
        units = dispatch(samples)
    barrier.wait()
    _summarize(units, ledger)
    gvcfs = cohort.cohort_input_set(barrier.outcomes(), config)
    cohort.CohortPipeline(config, executor).run(gvcfs)
    return 0

def _submit_cluster(config, parallel, samples, work_dir, manifest, ledger):
    scheduler = parallel["scheduler"]
    context_file = run_info.write_context(config, work_dir, manifest, ledger.path, scheduler)

    def on_submit(jobids):
        run_info.write_context(config, work_dir, manifest, ledger.path, scheduler, jobids)
    with prun.start(parallel, config, ledger, context_file=context_file,
                    on_submit=on_submit) as dispatch:
        units = dispatch(samples)
    logger.info("Submitted %s units; check progress with: wespipe --status %s"
                % (len(units), config["config_file"]))
    return 0

def _summarize(units, ledger):
    failed = ledger.all()
    logger.info("Per-sample processing finished: %s of %s samples succeeded"
                % (len([u for u in units if u.status == SUCCEEDED]), len(units)))
    for r in failed:
        logger.warning("Failed sample %s at %s: %s" % (r.sample, r.stage, r.reason))

def _report_status(config, context):
    """Print the scheduler state of the most recent cluster submission.
    """
    if context is None:
        context = run_info.read_context(run_info.context_file(run_info.get_work_dir(config)))
    if not context.get("scheduler") or not context.get("jobids"):
        logger.info("No cluster jobs recorded for this run")
        return 0
    for role, state in sorted(cluster.status(context["scheduler"], context["jobids"]).items()):
        logger.info("%s job %s: %s" % (role, context["jobids"][role], state))
    failed = FailureLedger(context["ledger"]).all()
    logger.info("%s samples recorded as failed" % len(failed))
    return 0
