"""Parsing of command line arguments into parallel inputs.
"""
import toolz as tz

def to_parallel(args, config):
    """Convert input arguments into a parallel dictionary for passing to processing.

    Command line options take precedence over the `processing` and `cluster`
    sections of the configuration.
    """
    ptype, scheduler = _get_type_and_scheduler(getattr(args, "paralleltype", None),
                                               getattr(args, "scheduler", None),
                                               tz.get_in(["cluster", "scheduler"], config))
    batch_size = getattr(args, "batch_size", None) or tz.get_in(["processing", "batch_size"], config, 1)
    parallel = {"type": ptype,
                "scheduler": scheduler,
                "queue": getattr(args, "queue", None) or tz.get_in(["cluster", "queue"], config),
                "walltime": tz.get_in(["cluster", "walltime"], config),
                "batch_size": max(1, int(batch_size))}
    return parallel

def _get_type_and_scheduler(paralleltype, scheduler, config_scheduler):
    """Return parallelization approach from command line providing sane defaults.

    Asking for a scheduler implies a cluster run; a cluster run without one
    falls back to the scheduler named in the configuration, then PBS Pro.
    """
    if scheduler is not None:
        paralleltype = "cluster"
    if paralleltype is None:
        paralleltype = "local"
    if paralleltype == "cluster" and scheduler is None:
        scheduler = config_scheduler or "pbspro"
    return paralleltype, scheduler
