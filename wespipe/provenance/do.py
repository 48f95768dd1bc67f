"""Centralize running of external commands, providing logging and tracking.

Every external tool (bwa, samtools, Picard, GATK) goes through a
`CommandExecutor`. The executor reports the exit status instead of raising,
leaving the decision about what a failure means to the caller: a per-sample
stage turns it into a StageError, quality control only warns.
"""
import collections
import os
import subprocess

from wespipe.log import logger, logger_cl
from wespipe.pipeline.errors import StageError

CommandResult = collections.namedtuple("CommandResult", ["exitcode", "output"])

class CommandExecutor(object):
    """Run external tools as subprocesses, capturing the tail of their output.
    """
    def __init__(self, keep_lines=100):
        self.keep_lines = keep_lines

    def execute(self, tool, args, working_dir=None, stdout_file=None, descr=None):
        """Run `tool` with `args`, returning a CommandResult(exitcode, output).

        stdout_file redirects standard output into a file, for tools like
        `bwa mem` or `samtools flagstat` that write their results there.
        """
        cmd = [str(tool)] + [str(x) for x in args]
        if descr:
            logger.debug(descr)
        logger_cl.debug(" ".join(cmd))
        try:
            if stdout_file:
                with open(stdout_file, "w") as out_handle:
                    return self._do_run(cmd, working_dir, out_handle)
            else:
                return self._do_run(cmd, working_dir, None)
        except OSError as e:
            logger.debug("Could not start %s: %s" % (tool, e))
            return CommandResult(127, str(e))

    def _do_run(self, cmd, working_dir, out_handle):
        s = subprocess.Popen(
            cmd,
            cwd=working_dir,
            stdout=out_handle if out_handle else subprocess.PIPE,
            stderr=subprocess.PIPE if out_handle else subprocess.STDOUT,
            close_fds=True,
        )
        stream = s.stderr if out_handle else s.stdout
        debug_stdout = collections.deque(maxlen=self.keep_lines)
        for raw_line in stream:
            line = raw_line.decode("utf-8", errors="replace")
            if line.rstrip():
                debug_stdout.append(line)
                logger.debug(line.rstrip())
        stream.close()
        exitcode = s.wait()
        return CommandResult(exitcode, "".join(debug_stdout))

def command_failure(name, result):
    """Describe a failed command in a single line suitable for the failure ledger.
    """
    last = [x.strip() for x in result.output.strip().split("\n") if x.strip()][-1:]
    msg = "%s exited with code %s" % (name, result.exitcode)
    if last:
        msg += ": %s" % last[0]
    return msg

def run(executor, tool, args, stage, descr=None, stdout_file=None, working_dir=None):
    """Run a command through `executor`, raising StageError on a non-zero exit.
    """
    result = executor.execute(tool, args, working_dir=working_dir, stdout_file=stdout_file,
                              descr=descr)
    if result.exitcode != 0:
        raise StageError(stage, command_failure(descr or os.path.basename(str(tool)), result))
    return result
