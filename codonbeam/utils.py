import re
from typing import Optional, Tuple

from codonbeam.core.codon_table import CodonTable
from codonbeam.exceptions import InputFormatError

_WHITESPACE = re.compile(r"\s+")
_RUNS = re.compile(r"(A+|T+|G+|C+)")


def clean_protein_sequence(seq: str) -> str:
    """Strip whitespace and upper-case. Does not validate residues."""
    if seq is None:
        return ""
    return _WHITESPACE.sub("", str(seq)).upper()


def is_protein_sequence(seq):
    # DNA only when every letter is a nucleotide; GS linkers are proteins
    dna_chars = set("ACGTUN")
    return any(c not in dna_chars for c in seq.upper())


def calculate_gc(seq):
    seq = seq.upper()
    gc_count = seq.count("G") + seq.count("C")
    return gc_count / len(seq) if len(seq) > 0 else 0


def max_homopolymer_length(seq):
    runs = _RUNS.findall(seq.upper())
    return max([len(r) for r in runs], default=0)


def repeated_windows(seq: str, k: int = 6):
    """k-mers occurring more than once (overlapping occurrences count)."""
    seen = set()
    repeated = set()
    for i in range(len(seq) - k + 1):
        w = seq[i:i + k]
        if w in seen:
            repeated.add(w)
        seen.add(w)
    return repeated


def verify_backtranslation_matches_protein(
    dna: str,
    protein: str,
    codon_table=None,
) -> Tuple[bool, str, Optional[str]]:
    """
    Translate dna and compare with protein.

    Returns (ok, reason, translated); translated is None when translation
    itself failed.
    """
    table = codon_table or CodonTable()
    try:
        aa = table.translate(dna)
    except InputFormatError as e:
        return False, str(e), None

    if aa == protein:
        return True, "", aa
    if len(aa) != len(protein):
        return False, f"length mismatch: expected {len(protein)} AA, got {len(aa)}", aa
    first = next(i for i, (a, b) in enumerate(zip(aa, protein)) if a != b)
    return False, f"residue {first + 1}: expected '{protein[first]}', got '{aa[first]}'", aa
