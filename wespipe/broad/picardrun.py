"""Convenience functions for running common Picard utilities.
"""


def picard_fixmate(picard, in_bam, out_bam, tmp_dir=None, stage="FixMates"):
    """Fix paired end mate information after alignment, adding mate CIGARs.
    """
    opts = [("ADD_MATE_CIGAR", "True"),
            ("ASSUME_SORTED", "false"),
            ("I", in_bam),
            ("O", out_bam)]
    if tmp_dir:
        opts.append(("TMP_DIR", tmp_dir))
    picard.run("FixMateInformation", opts, stage, tmp_dir)
    return out_bam

def picard_sort(picard, in_bam, out_bam, sort_order="coordinate", tmp_dir=None, stage="Sort"):
    """Sort a BAM file by coordinates.
    """
    opts = [("SORT_ORDER", sort_order),
            ("CREATE_INDEX", "true"),
            ("I", in_bam),
            ("O", out_bam)]
    if tmp_dir:
        opts.append(("TMP_DIR", tmp_dir))
    picard.run("SortSam", opts, stage, tmp_dir)
    return out_bam

def picard_mark_duplicates(picard, in_bam, out_bam, metrics_file, tmp_dir=None,
                           stage="MarkDuplicates"):
    opts = [("I", in_bam),
            ("O", out_bam),
            ("M", metrics_file)]
    if tmp_dir:
        opts.append(("TMP_DIR", tmp_dir))
    picard.run("MarkDuplicates", opts, stage, tmp_dir)
    return out_bam, metrics_file
