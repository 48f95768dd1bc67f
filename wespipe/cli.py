"""Run the whole exome pipeline from the command line.

The <config file> is a YAML configuration specifying input, output and temp
directories, the reference and resource files, the tools to use and the
processing and cluster resources.

Usage:
  wespipe <config_file>
     -t type of parallelization to use:
          - local: bounded worker pool on this machine (default)
          - cluster: job array plus a dependent finalization job
     -s scheduler for cluster runs (pbspro, slurm, sge, lsf)
     -q queue to submit cluster jobs to
     -n number of samples processed concurrently in local runs
"""
import argparse
import sys

from wespipe.distributed import clargs
from wespipe.pipeline import config_utils, version
from wespipe.pipeline.errors import WespipeError
from wespipe.pipeline.main import log_fatal, run_main

def parse_cl_args(in_args):
    """Parse input commandline arguments, returning the parsed namespace.
    """
    description = "Whole exome alignment, variant calling and joint genotyping."
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("config_file", nargs="?",
                        help="YAML configuration file describing inputs, references and tools")
    parser.add_argument("-t", "--paralleltype", choices=["local", "cluster"],
                        help="Approach to parallelization (default local)")
    parser.add_argument("-s", "--scheduler", choices=["pbspro", "slurm", "sge", "lsf"],
                        help="Scheduler to submit to for cluster runs")
    parser.add_argument("-q", "--queue",
                        help="Scheduler queue to run jobs on, for cluster runs")
    parser.add_argument("-n", "--batch-size", type=int,
                        help="Samples to process concurrently in local runs")
    parser.add_argument("--sample",
                        help="Process only this sample, skipping the cohort stage")
    parser.add_argument("--finalize-only", action="store_true", default=False,
                        help="Skip per-sample processing and run the cohort stage")
    parser.add_argument("--status", action="store_true", default=False,
                        help="Report the state of submitted cluster jobs")
    parser.add_argument("-v", "--version", help="Print current version",
                        action="store_true")
    # Passed to units submitted to a cluster scheduler
    parser.add_argument("--context", help=argparse.SUPPRESS)
    parser.add_argument("--array-unit", action="store_true", default=False, help=argparse.SUPPRESS)
    args = parser.parse_args(in_args)
    if not args.version:
        error_msg = _sanity_check_args(args)
        if error_msg:
            parser.error(error_msg)
    return args

def _sanity_check_args(args):
    """Ensure dependent arguments are correctly specified
    """
    if not args.config_file and not args.context:
        return "Require a YAML configuration file"
    if args.sample and args.finalize_only:
        return "Single sample (--sample) and finalize only (--finalize-only) modes are exclusive"
    if args.array_unit and not args.context:
        return "Array units (--array-unit) run from a serialized context (--context)"
    if args.queue and args.paralleltype == "local":
        return "Queue (-q) only applies to cluster runs (-t cluster)"

def main(in_args=None):
    args = parse_cl_args(sys.argv[1:] if in_args is None else in_args)
    if args.version:
        print(version.__version__)
        return 0
    try:
        parallel = None
        if not args.context:
            parallel = clargs.to_parallel(args, config_utils.load_config(args.config_file))
    except WespipeError as e:
        log_fatal(e)
        return 1
    # run_main logs its own fatal errors
    try:
        return run_main(config_file=args.config_file, parallel=parallel, sample=args.sample,
                        finalize_only=args.finalize_only, context_file=args.context,
                        array_unit=args.array_unit, status=args.status)
    except WespipeError:
        return 1

if __name__ == "__main__":
    sys.exit(main())
