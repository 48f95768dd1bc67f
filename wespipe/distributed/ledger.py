"""Record of samples that failed, shared by every unit of a run.

Backed by a tab separated file in the run work directory so threads in the
local pool and array elements on different cluster nodes append to the same
place. Writers serialize on an in-process lock plus an exclusive `flock` on
the file; the membership check and the append happen under both, so the
first failure reported for a sample is the one kept.

Samples that finish every stage leave a marker file under `succeeded/`, so
the finalization job never mistakes a GVCF left by an earlier run for a
success in this one.
"""
import collections
import contextlib
import fcntl
import os
import threading

from wespipe import utils
from wespipe.log import logger

LEDGER_NAME = "failed_samples.tsv"
# one marker file per sample that finished in the current run
SUCCESS_DIR = "succeeded"

FailureRecord = collections.namedtuple("FailureRecord", ["sample", "stage", "reason"])

def ledger_file(work_dir):
    return os.path.join(work_dir, LEDGER_NAME)

def _clean(x):
    return " ".join(str(x).split())

class FailureLedger(object):
    """Append only, first failure wins record of (sample, stage, reason).
    """
    def __init__(self, path):
        self.path = os.path.abspath(path)
        utils.safe_makedir(os.path.dirname(self.path))
        self._lock = threading.Lock()

    @contextlib.contextmanager
    def _locked(self, mode):
        with self._lock:
            with open(self.path, mode) as handle:
                fcntl.flock(handle, fcntl.LOCK_EX)
                try:
                    yield handle
                finally:
                    fcntl.flock(handle, fcntl.LOCK_UN)

    @staticmethod
    def _parse(handle):
        out = []
        for line in handle:
            parts = line.rstrip("\n").split("\t", 2)
            if len(parts) == 3 and parts[0]:
                out.append(FailureRecord(*parts))
        return out

    def record(self, sample, stage, reason):
        """Add a failure for sample, returning False if one was already recorded.
        """
        with self._locked("a+") as handle:
            handle.seek(0)
            if any(r.sample == sample for r in self._parse(handle)):
                logger.debug("Ignoring additional failure for %s at %s: %s" % (sample, stage, reason))
                return False
            handle.seek(0, os.SEEK_END)
            handle.write("%s\t%s\t%s\n" % (_clean(sample), _clean(stage), _clean(reason)))
            handle.flush()
            os.fsync(handle.fileno())
        logger.info("Recorded failure for %s at %s: %s" % (sample, stage, reason))
        return True

    def all(self):
        if not os.path.exists(self.path):
            return []
        with self._locked("r") as handle:
            return self._parse(handle)

    def failed_ids(self):
        return [r.sample for r in self.all()]

    def contains(self, sample):
        return sample in self.failed_ids()

    def get(self, sample):
        for r in self.all():
            if r.sample == sample:
                return r
        return None

    # ## Success markers

    def _success_file(self, sample):
        return os.path.join(os.path.dirname(self.path), SUCCESS_DIR, _clean(sample))

    def record_success(self, sample):
        """Mark sample as having finished every stage in the current run.
        """
        out_file = self._success_file(sample)
        utils.safe_makedir(os.path.dirname(out_file))
        with open(out_file, "w") as out_handle:
            out_handle.write("%s\n" % sample)
        return out_file

    def succeeded(self, sample):
        return os.path.exists(self._success_file(sample))

    def reset(self):
        """Truncate the ledger and drop success markers at the start of a full run.
        """
        with self._locked("w"):
            utils.remove_safe(os.path.join(os.path.dirname(self.path), SUCCESS_DIR))
