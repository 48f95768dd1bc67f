#!/usr/bin/env python -Es
"""Run an automated whole exome analysis for high throughput sequencing data.

Handles runs in local or cluster mode based on the command line or
configured parameters. See `wespipe --help` for the available options.

Usage:
  wespipe_nextgen.py <config_file>
     -t type of parallelization to use:
          - local: bounded worker pool on this machine (default)
          - cluster: scheduler job array plus dependent finalization job
     -n samples to process concurrently in local runs
     -s scheduler for cluster runs (pbspro, slurm, sge, lsf)
     -q queue to submit cluster jobs to
"""
import sys

from wespipe.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
