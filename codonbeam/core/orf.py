from __future__ import annotations

from typing import Optional

from Bio.Seq import Seq

from codonbeam.exceptions import InputFormatError


def translate_dna(dna: str, *, to_stop: bool = False, table: Optional[int] = None) -> str:
    """
    Translate a DNA coding sequence to amino acids (one-letter). May include '*'
    if to_stop=False and internal stops are present.
    """
    seq = Seq(dna.upper().replace("U", "T"))
    if table is None:
        aa = seq.translate(to_stop=to_stop)
    else:
        aa = seq.translate(table=table, to_stop=to_stop)
    return str(aa)


def cds_to_protein(dna: str, record_id: str = "record", table: Optional[int] = None) -> str:
    """
    Protein for a DNA CDS given as input: length must be a multiple of 3, no
    internal stops; a terminal stop is stripped.
    """
    dna = dna.strip().upper().replace("U", "T")
    bad = sorted(set(dna) - set("ACGT"))
    if bad:
        raise InputFormatError(
            f"DNA record '{record_id}' has non-ACGT characters: {''.join(bad)}"
        )
    if len(dna) % 3 != 0:
        raise InputFormatError(f"DNA record '{record_id}' length ({len(dna)}) not divisible by 3")

    protein = translate_dna(dna, to_stop=False, table=table)
    if "*" in protein[:-1]:
        raise InputFormatError(
            f"DNA record '{record_id}' translates with internal stop codon(s). "
            "Provide a valid CDS (no internal stops) or a protein FASTA."
        )
    if protein.endswith("*"):
        protein = protein[:-1]
    return protein
