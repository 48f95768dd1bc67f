"""Failure taxonomy for a whole exome run.

Sample scoped problems (StageError) are isolated to the failing sample and
recorded in the failure ledger. Everything else ends the run with a non-zero
exit status.
"""

class WespipeError(Exception):
    pass

class ConfigurationError(WespipeError):
    """Required reference, resource or tool file is missing or unreadable.
    """
    pass

class InputDiscoveryError(WespipeError):
    """No samples recognized, or a requested sample is not present.
    """
    pass

class StageError(WespipeError):
    """An external tool failed or left an empty artifact for one sample.
    """
    def __init__(self, stage, reason):
        super(StageError, self).__init__("%s: %s" % (stage, reason))
        self.stage = stage
        self.reason = reason

class DispatchError(WespipeError):
    """The execution backend could not start a unit.
    """
    pass

class BarrierUnsatisfiableError(WespipeError):
    """Every dispatched unit finished without a usable per-sample output.
    """
    pass

class CohortStageError(WespipeError):
    """A joint genotyping or recalibration step failed.
    """
    pass
