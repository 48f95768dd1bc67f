"""High level code for driving a whole exome analysis.

  - run_info.py: Discover samples in an input directory and record the run manifest.
  - sample.py: Take a single sample through alignment, recalibration and GVCF calling.
  - cohort.py: Joint genotype and filter all successful samples together.
  - main.py: Select the execution mode and connect the pieces.
"""
