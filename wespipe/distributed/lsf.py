"""Commandline interaction with LSF schedulers.
"""
import os
import re
import subprocess

_jobid_pat = re.compile(r"Job <(?P<jobid>\d+)> is")

ARRAY_INDEX_VAR = "LSB_JOBINDEX"
ARRAY_INDEX_BASE = 1

def _walltime(walltime):
    """LSF run limits are hours:minutes.
    """
    parts = str(walltime).split(":")
    return ":".join(parts[:2]) if len(parts) > 2 else str(walltime)

def get_scheduler_args(name, queue, walltime, cores, memory_gb, log_dir):
    args = ["-J", name, "-W", _walltime(walltime), "-n", str(cores),
            "-o", os.path.join(log_dir, "%J_%I.out")]
    if queue:
        args += ["-q", queue]
    if memory_gb:
        args += ["-R", "rusage[mem=%s]" % (int(memory_gb) * 1024)]
    return args

def _depend_args(depend_any):
    # ended() is satisfied by both DONE and EXIT
    return ["-w", "ended(%s)" % depend_any] if depend_any else []

def _submit(cl):
    status = subprocess.check_output(cl, universal_newlines=True)
    match = _jobid_pat.search(status)
    return match.group("jobid") if match else None

def _array_name(scheduler_args, count):
    args = list(scheduler_args)
    i = args.index("-J")
    args[i + 1] = "%s[1-%s]" % (args[i + 1], count)
    return args

def submit_job(scheduler_args, command, depend_any=None):
    """Submit a job to the scheduler, returning the supplied job ID.
    """
    cl = ["bsub"] + scheduler_args + _depend_args(depend_any) + command
    return _submit(cl)

def submit_array(scheduler_args, command, count, depend_any=None):
    """Submit a job array of `count` elements, indexed from 1.
    """
    cl = ["bsub"] + _array_name(scheduler_args, count) + _depend_args(depend_any) + command
    return _submit(cl)

def stop_job(jobid):
    cl = ["bkill", jobid]
    subprocess.check_call(cl)

def job_status(jobids):
    run_info = subprocess.check_output(["bjobs", "-a"] + list(jobids), universal_newlines=True)
    out = dict((j, "finished") for j in jobids)
    for parts in (l.split() for l in run_info.split("\n") if l.strip()):
        if len(parts) >= 3 and parts[0] in out:
            pid, _, status = parts[:3]
            status = status.lower()
            if status == "run":
                out[pid] = "running"
            elif out[pid] != "running" and status not in ["done", "exit"]:
                out[pid] = status
    return out
