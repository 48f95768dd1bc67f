"""Commandline interaction with SGE cluster schedulers.
"""
import os
import re
import subprocess

_jobid_pat = re.compile(r"Your job(?:-array)? (?P<jobid>\d+)")

ARRAY_INDEX_VAR = "SGE_TASK_ID"
ARRAY_INDEX_BASE = 1

def get_scheduler_args(name, queue, walltime, cores, memory_gb, log_dir):
    args = ["-N", name, "-l", "h_rt=%s" % walltime, "-pe", "smp", str(cores),
            "-o", log_dir + os.sep]
    if queue:
        args += ["-q", queue]
    if memory_gb:
        args += ["-l", "h_vmem=%sG" % max(1, int(memory_gb) // max(1, int(cores)))]
    return args

def _depend_args(depend_any):
    # SGE holds until the array finishes, whatever the exit status of its tasks
    return ["-hold_jid", depend_any] if depend_any else []

def _submit(cl):
    status = subprocess.check_output(cl, universal_newlines=True)
    match = _jobid_pat.search(status)
    return match.group("jobid") if match else None

def submit_job(scheduler_args, command, depend_any=None):
    """Submit a job to the scheduler, returning the supplied job ID.
    """
    cl = ["qsub", "-cwd", "-b", "y", "-j", "y"] + scheduler_args + _depend_args(depend_any) + command
    return _submit(cl)

def submit_array(scheduler_args, command, count, depend_any=None):
    """Submit an indexed array of `count` tasks numbered from 1.
    """
    cl = (["qsub", "-cwd", "-b", "y", "-j", "y", "-t", "1-%s" % count] + scheduler_args
          + _depend_args(depend_any) + command)
    return _submit(cl)

def stop_job(jobid):
    cl = ["qdel", jobid]
    subprocess.check_call(cl)

def job_status(jobids):
    """Current state of each submitted job; jobs no longer queued are reported finished.
    """
    run_info = subprocess.check_output(["qstat"], universal_newlines=True)
    out = dict((j, "finished") for j in jobids)
    for parts in (l.split() for l in run_info.split("\n") if l.strip()):
        if len(parts) >= 5 and parts[0] in out:
            pid, _, _, _, status = parts[:5]
            status = status.lower()
            if status == "r":
                out[pid] = "running"
            elif out[pid] != "running":
                out[pid] = "queued" if "q" in status else status
    return out
