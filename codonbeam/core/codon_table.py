# codonbeam/core/codon_table.py

from __future__ import annotations

from typing import Dict, Iterable, Tuple

from Bio.Data import CodonTable as BioCodonTable

from codonbeam.exceptions import (
    EmptySequence,
    InputFormatError,
    InvalidLength,
    UnknownCodon,
    UnknownResidue,
)

STOP = "*"
NUCLEOTIDES = frozenset("ACGT")


class CodonTable:
    """
    Synonymous codons per amino acid, built from an NCBI genetic code.

    Codons are kept in lexicographic order so that every search over the
    table expands candidates in the same order on every run.
    """

    def __init__(self, table_id: int = 1):
        try:
            bio_table = BioCodonTable.unambiguous_dna_by_id[int(table_id)]
        except KeyError:
            raise InputFormatError(f"Unknown NCBI genetic code id: {table_id!r}")

        self.table_id = int(table_id)
        forward: Dict[str, str] = {c.upper(): aa for c, aa in bio_table.forward_table.items()}
        for stop in bio_table.stop_codons:
            forward[stop.upper()] = STOP

        back: Dict[str, list] = {}
        for codon, aa in forward.items():
            back.setdefault(aa, []).append(codon)

        self._forward = forward
        self._back: Dict[str, Tuple[str, ...]] = {aa: tuple(sorted(cs)) for aa, cs in back.items()}
        self.alphabet = frozenset(self._back)

    def __contains__(self, aa: str) -> bool:
        return aa in self._back

    def __repr__(self):
        return f"CodonTable(table_id={self.table_id})"

    def synonyms(self, aa: str) -> Tuple[str, ...]:
        try:
            return self._back[aa]
        except KeyError:
            raise UnknownResidue(aa)

    def translate(self, dna: str) -> str:
        dna = dna.upper()
        if len(dna) % 3 != 0:
            raise InvalidLength(len(dna))
        protein = []
        for i in range(0, len(dna), 3):
            codon = dna[i:i + 3]
            aa = self._forward.get(codon)
            if aa is None:
                raise UnknownCodon(codon, i)
            protein.append(aa)
        return "".join(protein)

    def validate(self, sequence: Iterable[str]) -> str:
        seq = "".join(sequence)
        if not seq:
            raise EmptySequence("Amino-acid sequence is empty")
        bad = [aa for aa in seq if aa not in self._back]
        if bad:
            raise UnknownResidue(bad)
        return seq
