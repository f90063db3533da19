# codonbeam/defaults.py

DEFAULT_BEAM_WIDTH = 100
DEFAULT_PATHS_PER_STATE = 8
DEFAULT_MAX_HOMOPOLYMER = 4
DEFAULT_MAX_CODON_RUN = 3
DEFAULT_GENETIC_CODE = 1

# neutral score for positions without a full 9-nt window, and for absent table entries
DEFAULT_BOUNDARY_SCORE = 0.0
NEUTRAL_SCORE = 0.0

# regex exclusion patterns have no fixed width; scan at most this far back
DEFAULT_MAX_PATTERN_LENGTH = 100

MAX_INPUT_RECORDS = 1000

DEFAULT_FORBIDDEN_MOTIFS = [
    # keep empty unless a motif should be excluded from every run
]

# Type IIS enzymes removed from the insert for Golden Gate assembly
GOLDEN_GATE_ENZYMES = ["BsaI", "BbsI", "BsmBI", "SapI"]

# enzymes whose sites sit inside the expression promoter; the ORF must not carry them
PROMOTER_RESTRICTION_SITES = {
    "AOX1": ["PmeI", "SwaI"],
    "GAP": ["PmeI"],
    "PGK1": ["PmeI"],
    "FLD1": ["PmeI"],
    "TEF1": ["PmeI"],
}
