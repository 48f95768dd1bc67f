"""Commandline interaction with SLURM schedulers.
"""
import os
import subprocess

ARRAY_INDEX_VAR = "SLURM_ARRAY_TASK_ID"
ARRAY_INDEX_BASE = 0

def get_scheduler_args(name, queue, walltime, cores, memory_gb, log_dir):
    args = ["-J", name, "-t", str(walltime), "-c", str(cores),
            "-o", os.path.join(log_dir, "%x_%A_%a.out")]
    if queue:
        args += ["-p", queue]
    if memory_gb:
        args += ["--mem=%sG" % memory_gb]
    return args

def _depend_args(depend_any):
    return ["--dependency=afterany:%s" % depend_any] if depend_any else []

def _submit(cl):
    # --parsable prints "jobid" or "jobid;cluster"
    status = subprocess.check_output(cl, universal_newlines=True).strip()
    jobid = status.split(";")[0].strip()
    return jobid if jobid.isdigit() else None

def _wrap(command):
    return ["--wrap", " ".join(command)]

def submit_job(scheduler_args, command, depend_any=None):
    """Submit a job to the scheduler, returning the supplied job ID.
    """
    cl = ["sbatch", "--parsable"] + scheduler_args + _depend_args(depend_any) + _wrap(command)
    return _submit(cl)

def submit_array(scheduler_args, command, count, depend_any=None):
    """Submit an array job with task ids 0 to count - 1.
    """
    cl = (["sbatch", "--parsable", "--array=0-%s" % (count - 1)] + scheduler_args
          + _depend_args(depend_any) + _wrap(command))
    return _submit(cl)

def stop_job(jobid):
    cl = ["scancel", jobid]
    subprocess.check_call(cl)

def job_status(jobids):
    run_info = subprocess.check_output(["squeue", "-h", "-o", "%i %T", "-j", ",".join(jobids)],
                                       universal_newlines=True)
    out = dict((j, "finished") for j in jobids)
    for parts in (l.split() for l in run_info.split("\n") if l.strip()):
        if len(parts) >= 2:
            # array elements are reported as jobid_index
            pid, status = parts[0].split("_")[0], parts[1].lower()
            if pid in out and out[pid] != "running":
                out[pid] = status
    return out
