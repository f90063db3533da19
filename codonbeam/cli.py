"""
Command-line arguments for the codonbeam batch runner.

Two ways to describe work:
- single mode: --sequence FASTA --score-table PATH plus the knobs below
- batch mode: --batch-table CSV/TSV, one job per row; blank cells fall back
  to the command-line values
"""

from __future__ import annotations

import argparse
from typing import List, Optional

from codonbeam.defaults import (
    DEFAULT_BEAM_WIDTH,
    DEFAULT_GENETIC_CODE,
    DEFAULT_MAX_CODON_RUN,
    DEFAULT_MAX_HOMOPOLYMER,
    DEFAULT_MAX_PATTERN_LENGTH,
    DEFAULT_PATHS_PER_STATE,
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="codonbeam",
        description="Back-translate proteins by beam search over a 9-mer context score table, "
                    "under motif exclusion, homopolymer and repeat constraints.",
    )

    # Inputs
    p.add_argument("--sequence", help="FASTA file of protein or DNA CDS records.")
    p.add_argument("--score-table", help="9-mer score table (.json, .csv, .tsv, .xlsx).")
    p.add_argument("--score-table-sheet", default=None, help="Sheet name when the score table is an Excel file.")
    p.add_argument("--batch-table", default=None,
                   help="CSV/TSV with one job per row (columns: sequence, score_table, optional overrides).")

    # Search
    p.add_argument("--optimization-mode", choices=["beam", "dp"], default="beam",
                   help="beam: top-K candidates by score; dp: top-K last-two-codon states.")
    p.add_argument("--beam-width", type=int, default=DEFAULT_BEAM_WIDTH, help="Candidates (or states) kept per position.")
    p.add_argument("--paths-per-state", type=int, default=DEFAULT_PATHS_PER_STATE,
                   help="Candidates kept per state in dp mode.")
    p.add_argument("--genetic-code", type=int, default=DEFAULT_GENETIC_CODE, help="NCBI genetic code table id.")

    # Constraints
    p.add_argument("--max-homopolymer", type=int, default=DEFAULT_MAX_HOMOPOLYMER,
                   help="Longest single-nucleotide run allowed.")
    p.add_argument("--no-homopolymer-check", action="store_true", help="Do not limit homopolymer runs.")
    p.add_argument("--no-unique-sixmers", action="store_true", help="Allow repeated 6-mers.")
    p.add_argument("--codon-run-diversity", action="store_true",
                   help="Reject the same codon used more than --max-codon-run times in a row.")
    p.add_argument("--max-codon-run", type=int, default=DEFAULT_MAX_CODON_RUN)
    p.add_argument("--repeat-encoding", action="store_true",
                   help="Encode repeated 6-residue peptides with different codons.")
    p.add_argument("--exclusions", default=None,
                   help="File of exclusion patterns, one per line (IUPAC or regex, '@codon' suffix, '#' comments).")
    p.add_argument("--exclude-motifs", default="", help="Extra exclusion patterns, '|' separated.")
    p.add_argument("--restriction-enzymes", default="", help="Enzyme names whose sites are excluded, ',' separated.")
    p.add_argument("--golden-gate", action="store_true", help="Exclude BsaI, BbsI, BsmBI and SapI sites.")
    p.add_argument("--promoter", default=None, help="Exclude the enzymes used to linearize this promoter (e.g. AOX1).")
    p.add_argument("--max-pattern-length", type=int, default=DEFAULT_MAX_PATTERN_LENGTH,
                   help="Longest match assumed for regex exclusion patterns.")

    # Output
    p.add_argument("--include-stop-codon", action="store_true", help="Append a stop codon, chosen by the search.")
    p.add_argument("--out", default="codonbeam_out", help="Output directory.")
    p.add_argument("--workers", type=int, default=1, help="Worker processes for records (1 = sequential).")
    p.add_argument("--log-file", default=None)
    p.add_argument("--verbose", action="store_true")

    return p


def get_cli_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = build_parser()
    args = p.parse_args(argv)

    if not args.batch_table and not (args.sequence and args.score_table):
        p.error("provide --batch-table, or both --sequence and --score-table")
    if args.beam_width < 1:
        p.error(f"--beam-width must be >= 1, got {args.beam_width}")
    if args.paths_per_state < 1:
        p.error(f"--paths-per-state must be >= 1, got {args.paths_per_state}")
    if args.max_homopolymer < 1:
        p.error(f"--max-homopolymer must be >= 1, got {args.max_homopolymer}")
    if args.workers < 1:
        p.error(f"--workers must be >= 1, got {args.workers}")

    return args
