"""Dispatch of per-sample units to a local worker pool or a cluster scheduler.
"""
import collections

# handle is the pool slot for local runs and jobid[index] on a cluster;
# status stays None until the unit's terminal outcome is known
ExecutionUnit = collections.namedtuple("ExecutionUnit", ["sample", "backend", "handle", "status"])
