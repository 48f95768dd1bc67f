"""Work with Broad's Java libraries from Python.

  Picard -- BAM manipulation: mate fixing, sorting, duplicate marking.
  GATK -- base quality recalibration, variant calling and filtering.
"""
from wespipe.broad import picardrun
from wespipe.pipeline import config_utils
from wespipe.provenance import do

# Shared by every Picard call
PICARD_DEFAULTS = [("MAX_RECORDS_IN_RAM", "2000000"), ("VALIDATION_STRINGENCY", "SILENT")]

class BroadRunner:
    """Simplify running Broad commandline tools.
    """
    def __init__(self, config, executor):
        self._config = config
        self._executor = executor
        self._java = config_utils.get_program("java", config)
        self._picard_jar = config_utils.get_jar("picard", config)
        self._gatk_jar = config_utils.get_jar("gatk", config)

    def run_fn(self, name, *args, **kwds):
        """Run pre-built functionality that used Broad tools by name.

        See the picardrun module for available functions.
        """
        fn = getattr(picardrun, name, None)
        assert fn is not None, "Could not find function %s in %s" % (name, picardrun)
        return fn(self, *args, **kwds)

    def _java_cmd(self, jar, tmp_dir):
        return config_utils.get_jvm_opts(self._config, tmp_dir) + ["-jar", jar]

    def cl_picard(self, command, options, tmp_dir=None):
        """Prepare a Picard commandline.
        """
        options = ["%s=%s" % (x, y) for x, y in list(options) + PICARD_DEFAULTS]
        return self._java_cmd(self._picard_jar, tmp_dir) + [command] + options

    def run(self, command, options, stage, tmp_dir=None):
        """Run a Picard command with the provided option pairs.
        """
        return do.run(self._executor, self._java, self.cl_picard(command, options, tmp_dir),
                      stage, descr="Picard %s" % command)

    def cl_gatk(self, command, params, tmp_dir=None):
        return self._java_cmd(self._gatk_jar, tmp_dir) + [command] + [str(x) for x in params]

    def run_gatk(self, command, params, stage, tmp_dir=None):
        """Run a GATK4 tool, raising StageError labelled with `stage` on failure.
        """
        return do.run(self._executor, self._java, self.cl_gatk(command, params, tmp_dir),
                      stage, descr="GATK %s" % command)

def runner_from_config(config, executor):
    return BroadRunner(config, executor)
