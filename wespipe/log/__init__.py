"""Utility functionality for logging.
"""
import os
import sys

import logbook

from wespipe import utils

LOG_NAME = "wespipe"
DEFAULT_LOG_DIR = "log"

def get_log_dir(config):
    d = config.get("log_dir")
    if not d:
        output_dir = utils.get_in(config, ("directories", "output"))
        d = os.path.join(output_dir, "logs") if output_dir else DEFAULT_LOG_DIR
    return d

logger = logbook.Logger(LOG_NAME)
logger_cl = logbook.Logger(LOG_NAME + "-commands")

def _is_cl(record, _):
    return record.channel == LOG_NAME + "-commands"

def _not_cl(record, handler):
    return not _is_cl(record, handler)

def _format_str(config):
    return "".join(["[{record.time:%Y-%m-%dT%H:%MZ}] " if config.get("include_time", True) else "",
                    "{record.message}"])

class CloseableNestedSetup(logbook.NestedSetup):
    def close(self):
        for obj in self.objects:
            if hasattr(obj, "close"):
                obj.close()

def _create_log_handler(config):
    logbook.set_datetime_format("utc")
    handlers = [logbook.NullHandler()]
    format_str = _format_str(config)
    log_dir = get_log_dir(config)
    if log_dir:
        utils.safe_makedir(log_dir)
        handlers.append(logbook.FileHandler(os.path.join(log_dir, "%s.log" % LOG_NAME),
                                            format_string=format_str, level="INFO",
                                            filter=_not_cl))
        handlers.append(logbook.FileHandler(os.path.join(log_dir, "%s-debug.log" % LOG_NAME),
                                            format_string=format_str, level="DEBUG", bubble=True,
                                            filter=_not_cl))
        handlers.append(logbook.FileHandler(os.path.join(log_dir, "%s-commands.log" % LOG_NAME),
                                            format_string=format_str, level="DEBUG",
                                            filter=_is_cl))
    handlers.append(logbook.StreamHandler(sys.stderr, format_string=format_str, bubble=True,
                                          level="INFO", filter=_not_cl))
    return CloseableNestedSetup(handlers)

def setup_local_logging(config=None):
    """Setup logging for the current process, writing run level logs and console output.

    Worker threads in the local pool and array units on cluster nodes all log through
    the same handlers; per-sample files are added on top with `sample_log_handler`.
    """
    if config is None: config = {}
    handler = _create_log_handler(config)
    handler.push_application()
    return handler

def get_sample_log_file(config, sample_name):
    return os.path.join(utils.safe_makedir(os.path.join(get_log_dir(config), sample_name)),
                        "%s.log" % sample_name)

def sample_log_handler(config, sample_name):
    """File handler capturing everything logged while processing one sample.

    Bind with `with handler:`, which is local to the current thread, so
    concurrent samples in the local pool each write only their own messages.
    Records bubble up to the run level handlers.
    """
    return logbook.FileHandler(get_sample_log_file(config, sample_name),
                               format_string=_format_str(config), level="DEBUG",
                               bubble=True, delay=True)
