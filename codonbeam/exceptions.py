# codonbeam/exceptions.py


class CodonbeamError(Exception):
    """Base class for all codonbeam errors."""


class InputFormatError(CodonbeamError, ValueError):
    """Malformed input: sequence, table, exclusion list or configuration."""


class EmptySequence(InputFormatError):
    pass


class UnknownResidue(InputFormatError):
    def __init__(self, residues):
        if isinstance(residues, str):
            residues = [residues]
        self.residues = sorted(set(residues))
        super().__init__(
            f"Unknown amino acid residue(s): {', '.join(self.residues)}. "
            "Use one-letter codes for the 20 standard residues or '*' for stop."
        )


class InvalidLength(InputFormatError):
    def __init__(self, length: int):
        self.length = length
        super().__init__(f"DNA length ({length}) is not a multiple of 3")


class UnknownCodon(InputFormatError):
    def __init__(self, codon: str, position: int):
        self.codon = codon
        self.position = position
        super().__init__(f"Unknown codon '{codon}' at nucleotide {position}")


class ConstraintError(CodonbeamError):
    """Constraints could not be satisfied."""


class NoValidSequence(ConstraintError):
    def __init__(self, message: str, position=None):
        self.position = position
        super().__init__(message)


class MissingContext(CodonbeamError, KeyError):
    def __init__(self, aa_triplet: str):
        self.aa_triplet = aa_triplet
        super().__init__(aa_triplet)

    def __str__(self):
        return f"No scores for amino-acid context '{self.aa_triplet}'"
