"""Whole exome sample processing: per-sample alignment and calling, cohort joint genotyping.
"""
