"""Loads configurations from .yaml files and expands environment variables.
"""
import copy
import glob
import os

import toolz as tz
import yaml

from wespipe.pipeline.errors import ConfigurationError

DEFAULTS = {"project_name": "wes_project",
            "processing": {"batch_size": 5, "threads": 16, "memory_gb": 32,
                           "jvm_memory_gb": 28},
            "bwa": {"chunk_size": 50000000},
            "cleanup": {"delete_temp_on_success": True},
            "cluster": {"queue": "cpu", "walltime": "24:00:00"},
            "tools": {"bwa": "bwa", "samtools": "samtools", "java": "java"}}

# Reference and resource files checked before any sample is dispatched
REQUIRED_FILES = [("reference", "fasta"), ("reference", "bed"),
                  ("known_sites", "snps"), ("known_sites", "indels"),
                  ("vqsr_resources", "hapmap"), ("vqsr_resources", "omni"),
                  ("vqsr_resources", "kg_snps"), ("vqsr_resources", "dbsnp"),
                  ("vqsr_resources", "mills")]

REQUIRED_DIRS = [("directories", "input"), ("directories", "output"), ("directories", "temp")]

# ## Retrieval functions

def load_config(config_file):
    """Load YAML config file, replacing environmental variables and filling defaults.
    """
    if not config_file or not os.path.exists(config_file):
        raise ConfigurationError("Configuration file not found: %s" % config_file)
    with open(config_file) as in_handle:
        config = yaml.safe_load(in_handle) or {}
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration file %s does not contain a mapping" % config_file)
    config = _expand_paths(config)
    config = _merge_defaults(DEFAULTS, config)
    config["config_file"] = os.path.abspath(config_file)
    return config

def _merge_defaults(defaults, config):
    out = copy.deepcopy(defaults)
    for k, v in config.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge_defaults(out[k], v)
        elif v is not None:
            out[k] = v
    return out

def _expand_paths(config):
    for field, setting in config.items():
        if isinstance(config[field], dict):
            config[field] = _expand_paths(config[field])
        else:
            config[field] = expand_path(setting)
    return config

def expand_path(path):
    """ Combines os.path.expandvars with replacing ~ with $HOME.
    """
    try:
        return os.path.expandvars(path.replace("~", "$HOME"))
    except AttributeError:
        return path

def get_program(name, config):
    """Retrieve the command to run a program from the `tools` section.

    Handles both a full path to the executable and a directory containing it.
    """
    pconfig = tz.get_in(["tools", name], config) or name
    if os.path.isdir(pconfig):
        return os.path.join(pconfig, name)
    return pconfig

def get_jar(name, config):
    """Retrieve a java jar from the `tools` section, allowing wildcards.
    """
    pattern = tz.get_in(["tools", name], config)
    if not pattern:
        raise ConfigurationError("No jar configured for %s in tools section" % name)
    jars = sorted(glob.glob(expand_path(pattern)))
    if not jars:
        raise ConfigurationError("Could not find java jar for %s: %s" % (name, pattern))
    return jars[0]

def get_dir(name, config):
    return tz.get_in(["directories", name], config)

def get_resource_file(section, name, config):
    return tz.get_in([section, name], config)

def get_ref_file(config):
    return tz.get_in(["reference", "fasta"], config)

def get_target_bed(config):
    return tz.get_in(["reference", "bed"], config)

def get_threads(config):
    return int(tz.get_in(["processing", "threads"], config, 1))

def get_batch_size(config):
    return max(1, int(tz.get_in(["processing", "batch_size"], config, 1)))

def get_jvm_opts(config, tmp_dir=None):
    """JVM options shared by Picard and GATK calls.
    """
    opts = ["-Xmx%sg" % tz.get_in(["processing", "jvm_memory_gb"], config)]
    if tmp_dir:
        opts.append("-Djava.io.tmpdir=%s" % tmp_dir)
    return opts

def delete_temp(config):
    val = tz.get_in(["cleanup", "delete_temp_on_success"], config, True)
    if isinstance(val, str):
        return val.lower() in ["true", "yes", "1"]
    return bool(val)

# ## Validation

def check_required_files(config):
    """Ensure directories, reference and resource files, and java jars are available.

    Raises ConfigurationError listing everything missing, before anything is dispatched.
    """
    missing = []
    for keys in REQUIRED_DIRS:
        if not tz.get_in(keys, config):
            missing.append("%s (not set)" % ".".join(keys))
    for keys in REQUIRED_FILES:
        fname = tz.get_in(keys, config)
        if not fname:
            missing.append("%s (not set)" % ".".join(keys))
        elif not os.path.isfile(fname):
            missing.append("%s: %s" % (".".join(keys), fname))
    for jar in ["picard", "gatk"]:
        try:
            get_jar(jar, config)
        except ConfigurationError as e:
            missing.append(str(e))
    if missing:
        raise ConfigurationError("Required files not found:\n  %s" % "\n  ".join(missing))
    return config
