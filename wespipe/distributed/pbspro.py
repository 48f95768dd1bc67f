"""Commandline interaction with PBS Pro schedulers.
"""
import os
import subprocess

ARRAY_INDEX_VAR = "PBS_ARRAY_INDEX"
ARRAY_INDEX_BASE = 0

def get_scheduler_args(name, queue, walltime, cores, memory_gb, log_dir):
    select = "select=1:ncpus=%s" % cores
    if memory_gb:
        select += ":mem=%sgb" % memory_gb
    args = ["-N", name, "-l", select, "-l", "walltime=%s" % walltime,
            "-j", "oe", "-o", log_dir + os.sep]
    if queue:
        args += ["-q", queue]
    return args

def _depend_args(depend_any):
    return ["-W", "depend=afterany:%s" % depend_any] if depend_any else []

def _submit(cl):
    # qsub prints the full identifier, e.g. 1234.server or 1234[].server for arrays
    status = subprocess.check_output(cl, universal_newlines=True).strip()
    return status.split("\n")[-1].strip() or None

def submit_job(scheduler_args, command, depend_any=None):
    """Submit a job to the scheduler, returning the supplied job ID.
    """
    cl = ["qsub"] + scheduler_args + _depend_args(depend_any) + ["--"] + command
    return _submit(cl)

def submit_array(scheduler_args, command, count, depend_any=None):
    """Submit an array job with indices 0 to count - 1.

    PBS Pro rejects arrays with a single element, so callers submit a plain
    job in that case.
    """
    if count < 2:
        raise ValueError("PBS Pro job arrays need at least two elements")
    cl = (["qsub", "-J", "0-%s" % (count - 1)] + scheduler_args + _depend_args(depend_any)
          + ["--"] + command)
    return _submit(cl)

def stop_job(jobid):
    cl = ["qdel", jobid]
    subprocess.check_call(cl)

def _base_id(jobid):
    return jobid.split(".")[0].split("[")[0]

def job_status(jobids):
    run_info = subprocess.check_output(["qstat", "-x"] + list(jobids), universal_newlines=True)
    out = dict((j, "finished") for j in jobids)
    states = {"r": "running", "q": "queued", "h": "held", "b": "running", "f": "finished",
              "x": "finished", "e": "exiting"}
    for parts in (l.split() for l in run_info.split("\n") if l.strip()):
        if len(parts) >= 5:
            for jobid in jobids:
                if _base_id(parts[0]) == _base_id(jobid):
                    out[jobid] = states.get(parts[4].lower(), parts[4])
    return out
