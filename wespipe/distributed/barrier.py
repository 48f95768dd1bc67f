"""Gate the cohort stage on every dispatched unit reaching a terminal state.

Completion counts any terminal outcome, success or failure. The barrier moves
from Waiting to Released once, when the number of completed units equals the
number dispatched.
"""
import threading

from wespipe.log import logger

WAITING = "Waiting"
RELEASED = "Released"

SUCCEEDED = "Succeeded"
FAILED = "Failed"
TERMINAL = (SUCCEEDED, FAILED)

class FinalizationBarrier(object):
    def __init__(self, expected, on_release=None):
        if expected < 0:
            raise ValueError("Expected unit count must be non-negative: %s" % expected)
        self.expected = expected
        self.state = WAITING
        self._on_release = on_release
        self._outcomes = {}
        self._cond = threading.Condition()
        if expected == 0:
            with self._cond:
                self._release()

    @property
    def completed(self):
        with self._cond:
            return len(self._outcomes)

    @property
    def released(self):
        return self.state == RELEASED

    def outcomes(self):
        with self._cond:
            return dict(self._outcomes)

    def complete(self, unit, status):
        """Mark unit terminal. Repeated completions of a unit are ignored.

        Returns True if this call released the barrier.
        """
        if status not in TERMINAL:
            raise ValueError("Unit %s completed with non-terminal status %s" % (unit, status))
        with self._cond:
            if unit in self._outcomes:
                return False
            if self.state == RELEASED:
                raise ValueError("Unit %s completed after barrier release" % unit)
            self._outcomes[unit] = status
            logger.debug("Unit %s finished %s (%s/%s)" % (unit, status, len(self._outcomes),
                                                         self.expected))
            if len(self._outcomes) == self.expected:
                self._release()
                return True
        return False

    def _release(self):
        self.state = RELEASED
        self._cond.notify_all()
        if self._on_release:
            self._on_release(dict(self._outcomes))

    def wait(self, timeout=None):
        """Block until released, returning whether the barrier is released.
        """
        with self._cond:
            return self._cond.wait_for(lambda: self.state == RELEASED, timeout)

    def succeeded(self):
        return sorted(u for u, s in self.outcomes().items() if s == SUCCEEDED)

    def failed(self):
        return sorted(u for u, s in self.outcomes().items() if s == FAILED)
