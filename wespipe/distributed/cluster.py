"""Distributed dispatch of samples as an indexed scheduler job array.

Each array element runs one sample through the same per-sample pipeline used
locally. A finalization job is submitted with a dependency on any terminal
state of the whole array, so the scheduler starts the cohort stage once every
element has finished, whether it succeeded or failed. Nothing here polls.
"""
import os
import subprocess
import sys

import toolz as tz

from wespipe import log, utils
from wespipe.distributed import ExecutionUnit, lsf, pbspro, sge, slurm
from wespipe.log import logger
from wespipe.pipeline.errors import DispatchError

SCHEDULERS = {"pbspro": pbspro, "slurm": slurm, "sge": sge, "lsf": lsf}

def get_scheduler(name):
    try:
        return SCHEDULERS[name]
    except KeyError:
        raise DispatchError("Unsupported scheduler %s; choose from %s"
                            % (name, ", ".join(sorted(SCHEDULERS))))

def unit_command(context_file, *args):
    """Command line for a unit entry point, run with the current interpreter.
    """
    return [sys.executable, "-m", "wespipe.cli", "--context", os.path.abspath(context_file)] + list(args)

def _scheduler_args(scheduler, parallel, config, name):
    log_dir = utils.safe_makedir(os.path.join(log.get_log_dir(config), "cluster"))
    return scheduler.get_scheduler_args(
        name,
        parallel.get("queue") or tz.get_in(["cluster", "queue"], config),
        parallel.get("walltime") or tz.get_in(["cluster", "walltime"], config),
        tz.get_in(["processing", "threads"], config, 1),
        tz.get_in(["processing", "memory_gb"], config),
        log_dir)

def _submit(fn, *args, **kwargs):
    try:
        jobid = fn(*args, **kwargs)
    except (subprocess.CalledProcessError, OSError) as e:
        raise DispatchError("Scheduler submission failed: %s" % e)
    if not jobid:
        raise DispatchError("Could not determine job id from scheduler submission")
    return jobid

def _cancel(scheduler, jobid):
    """Stop sample units that would otherwise run without a finalization job.
    """
    logger.warning("Cancelling job %s after failed finalization submission" % jobid)
    try:
        scheduler.stop_job(jobid)
    except (subprocess.CalledProcessError, OSError) as e:
        logger.warning("Could not cancel job %s: %s" % (jobid, e))

def runner(parallel, config, context_file, on_submit=None):
    """Retrieve a dispatch function submitting samples as a job array plus finalization job.

    The returned units carry the scheduler handles; their terminal status is
    only known to the finalization job. on_submit receives the submitted job ids.
    """
    scheduler = get_scheduler(parallel["scheduler"])
    project = config.get("project_name", "wespipe")

    def dispatch(samples):
        if len(samples) == 0:
            raise DispatchError("No samples to submit")
        args = _scheduler_args(scheduler, parallel, config, "%s-samples" % project)
        if len(samples) == 1:
            jobid = _submit(scheduler.submit_job, args,
                            unit_command(context_file, "--sample", samples[0].name))
            handles = [jobid]
        else:
            jobid = _submit(scheduler.submit_array, args,
                            unit_command(context_file, "--array-unit"), len(samples))
            handles = ["%s[%s]" % (jobid, i + scheduler.ARRAY_INDEX_BASE) for i in range(len(samples))]
        logger.info("Submitted %s sample units as job %s" % (len(samples), jobid))
        final_args = _scheduler_args(scheduler, parallel, config, "%s-finalize" % project)
        try:
            final_jobid = _submit(scheduler.submit_job, final_args,
                                  unit_command(context_file, "--finalize-only"), depend_any=jobid)
        except DispatchError:
            _cancel(scheduler, jobid)
            raise
        logger.info("Submitted finalization job %s, runs after job %s ends" % (final_jobid, jobid))
        if on_submit:
            on_submit({"samples": jobid, "finalize": final_jobid})
        return [ExecutionUnit(s.name, "cluster", h, None) for s, h in zip(samples, handles)]
    return dispatch

def array_index(scheduler_name, environ=None):
    """Zero based manifest index of the current array element.
    """
    environ = os.environ if environ is None else environ
    scheduler = get_scheduler(scheduler_name)
    val = environ.get(scheduler.ARRAY_INDEX_VAR)
    if val is None:
        raise DispatchError("%s not set: not running as a %s array element"
                            % (scheduler.ARRAY_INDEX_VAR, scheduler_name))
    return int(val) - scheduler.ARRAY_INDEX_BASE

def status(scheduler_name, jobids):
    """Report the scheduler state of submitted jobs, keyed by role.
    """
    scheduler = get_scheduler(scheduler_name)
    ids = [jobids[k] for k in ["samples", "finalize"] if jobids.get(k)]
    if not ids:
        return {}
    try:
        states = scheduler.job_status(ids)
    except (subprocess.CalledProcessError, OSError) as e:
        raise DispatchError("Could not query scheduler status: %s" % e)
    return dict((k, states.get(jobids[k])) for k in ["samples", "finalize"] if jobids.get(k))
