# codonbeam/core/constraints.py

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Pattern, Tuple

from Bio.Data.IUPACData import ambiguous_dna_values

from codonbeam.core.candidate import Candidate
from codonbeam.defaults import (
    DEFAULT_MAX_CODON_RUN,
    DEFAULT_MAX_HOMOPOLYMER,
    DEFAULT_MAX_PATTERN_LENGTH,
)
from codonbeam.exceptions import InputFormatError

# rule names, used as keys of the rejection counts
EXCLUSION = "exclusion"
HOMOPOLYMER = "homopolymer"
SIXMER = "sixmer"
CODON_RUN = "codon_run"
REPEAT_ENCODING = "repeat_encoding"

CODON_ALIGNED_SUFFIX = "@codon"
IUPAC_DNA = frozenset(ambiguous_dna_values)
REPEAT_PEPTIDE_LENGTH = 6


def iupac_to_regex(motif: str) -> str:
    out = []
    for base in motif.upper():
        values = ambiguous_dna_values[base]
        out.append(values if len(values) == 1 else f"[{''.join(sorted(values))}]")
    return "".join(out)


@dataclass(frozen=True)
class ExclusionPattern:
    name: str
    pattern: str
    regex: Pattern
    codon_aligned: bool = False
    width: Optional[int] = None  # fixed match length; None for free-form regexes

    @classmethod
    def parse(cls, text: str, name: Optional[str] = None) -> "ExclusionPattern":
        raw = text.strip()
        codon_aligned = False
        if raw.endswith(CODON_ALIGNED_SUFFIX):
            codon_aligned = True
            raw = raw[: -len(CODON_ALIGNED_SUFFIX)].strip()
        if not raw:
            raise InputFormatError(f"Empty exclusion pattern: {text!r}")

        dna = raw.upper().replace("U", "T")
        if set(dna) <= IUPAC_DNA:
            expr = iupac_to_regex(dna)
            width = len(dna)
        else:
            expr = raw
            width = None

        try:
            probe = re.compile(expr, re.IGNORECASE)
        except re.error as e:
            raise InputFormatError(f"Invalid exclusion pattern {raw!r}: {e}")
        if probe.fullmatch("") is not None:
            raise InputFormatError(f"Exclusion pattern {raw!r} matches the empty string")

        # lookahead so that overlapping occurrences are all reported
        regex = re.compile(f"(?=({expr}))", re.IGNORECASE)
        return cls(name=name or raw, pattern=raw, regex=regex, codon_aligned=codon_aligned, width=width)

    def finditer(self, dna: str, offset: int = 0) -> Iterator[Tuple[int, int]]:
        """(start, end) of every occurrence, in coordinates shifted by offset."""
        for m in self.regex.finditer(dna):
            start = m.start()
            if self.codon_aligned and (offset + start) % 3 != 0:
                continue
            yield offset + start, offset + start + len(m.group(1))


class ExclusionSet:
    """
    Ordered, read-only collection of forbidden motifs.

    Text format, one pattern per line:
      GAATTC              literal DNA
      CACNNNNGTG          IUPAC degenerate DNA
      GG[AT]CC            regular expression
      TAG@codon           counts only when starting on a codon boundary
      # comment           also allowed after a pattern
      >BsaI               FASTA-style header naming the next line
    """

    def __init__(self, patterns: Iterable[ExclusionPattern] = (), max_pattern_length: int = DEFAULT_MAX_PATTERN_LENGTH):
        self.patterns: Tuple[ExclusionPattern, ...] = tuple(patterns)
        self.max_pattern_length = int(max_pattern_length)

    @classmethod
    def from_text(cls, content: str, max_pattern_length: int = DEFAULT_MAX_PATTERN_LENGTH) -> "ExclusionSet":
        patterns: List[ExclusionPattern] = []
        seen = set()
        pending_name = None
        for line in (content or "").splitlines():
            stripped = line.strip()
            if stripped.startswith(">"):
                pending_name = stripped[1:].strip() or None
                continue
            body = stripped.split("#", 1)[0].strip()
            if not body:
                continue
            pat = ExclusionPattern.parse(body, name=pending_name)
            pending_name = None
            key = (pat.regex.pattern, pat.codon_aligned)
            if key in seen:
                continue
            seen.add(key)
            patterns.append(pat)
        return cls(patterns, max_pattern_length=max_pattern_length)

    @classmethod
    def from_motifs(cls, motifs: Iterable[str], max_pattern_length: int = DEFAULT_MAX_PATTERN_LENGTH) -> "ExclusionSet":
        return cls.from_text("\n".join(m for m in motifs if m and m.strip()), max_pattern_length)

    def __len__(self) -> int:
        return len(self.patterns)

    def __iter__(self) -> Iterator[ExclusionPattern]:
        return iter(self.patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __repr__(self):
        return f"ExclusionSet({[p.pattern for p in self.patterns]})"

    @property
    def window(self) -> int:
        """How many trailing nucleotides can take part in a new match."""
        widths = [p.width if p.width is not None else self.max_pattern_length for p in self.patterns]
        return max(widths, default=0)

    def first_hit_in_suffix(self, tail: str, offset: int, new_length: int = 3) -> Optional[ExclusionPattern]:
        """
        First pattern with an occurrence that ends inside the last new_length
        nucleotides of tail. offset is the absolute position of tail[0].
        """
        boundary = len(tail) - new_length
        for pat in self.patterns:
            width = pat.width if pat.width is not None else self.max_pattern_length
            cut = max(0, len(tail) - width - new_length + 1)
            for _start, end in pat.finditer(tail[cut:], offset + cut):
                if end - offset > boundary:
                    return pat
        return None

    def find_all(self, dna: str) -> List[Tuple[ExclusionPattern, int]]:
        hits = []
        for pat in self.patterns:
            hits.extend((pat, start) for start, _end in pat.finditer(dna))
        return hits


def find_repeated_peptides(protein: str, single_codon: Iterable[str] = ("M", "W")) -> Dict[int, List[int]]:
    """
    For every 6-residue peptide seen more than once, map the codon position
    where each later occurrence completes to the start positions of the
    earlier ones. Peptides made only of single-codon residues are skipped.
    """
    single = set(single_codon)
    positions: Dict[str, List[int]] = {}
    for i in range(len(protein) - REPEAT_PEPTIDE_LENGTH + 1):
        positions.setdefault(protein[i:i + REPEAT_PEPTIDE_LENGTH], []).append(i)

    repeats: Dict[int, List[int]] = {}
    for peptide, starts in positions.items():
        if len(starts) < 2 or all(aa in single for aa in peptide):
            continue
        for k, start in enumerate(starts[1:], start=1):
            repeats[start + REPEAT_PEPTIDE_LENGTH - 1] = starts[:k]
    return repeats


class ConstraintEngine:
    """
    Hard sequence constraints, checked on each new candidate around the codon
    it just added. Every rule can be switched off; a disabled rule always passes.
    """

    def __init__(
        self,
        exclusions: Optional[ExclusionSet] = None,
        enforce_unique_sixmers: bool = True,
        enforce_homopolymer_diversity: bool = True,
        max_homopolymer: int = DEFAULT_MAX_HOMOPOLYMER,
        enforce_codon_run_diversity: bool = False,
        max_codon_run: int = DEFAULT_MAX_CODON_RUN,
        enforce_repeat_encoding: bool = False,
    ):
        if isinstance(exclusions, str):
            exclusions = ExclusionSet.from_text(exclusions)
        if int(max_homopolymer) < 1:
            raise InputFormatError(f"max_homopolymer must be >= 1; got {max_homopolymer}")
        if int(max_codon_run) < 1:
            raise InputFormatError(f"max_codon_run must be >= 1; got {max_codon_run}")

        self.exclusions = exclusions or ExclusionSet()
        self.enforce_unique_sixmers = bool(enforce_unique_sixmers)
        self.enforce_homopolymer_diversity = bool(enforce_homopolymer_diversity)
        self.max_homopolymer = int(max_homopolymer)
        self.enforce_codon_run_diversity = bool(enforce_codon_run_diversity)
        self.max_codon_run = int(max_codon_run)
        self.enforce_repeat_encoding = bool(enforce_repeat_encoding)

    @property
    def context_length(self) -> int:
        """Trailing nucleotides a candidate must keep for scoring and incremental checks."""
        needed = 9
        if self.exclusions:
            needed = max(needed, self.exclusions.window + 2)
        if self.enforce_repeat_encoding:
            needed = max(needed, REPEAT_PEPTIDE_LENGTH * 3)
        return needed

    def violation(
        self,
        candidate: Candidate,
        repeats: Optional[Dict[int, List[int]]] = None,
        exempt_runs: Optional[frozenset] = None,
    ) -> Optional[str]:
        """Name of the first rule the candidate breaks, or None."""
        if self.enforce_homopolymer_diversity and candidate.max_new_run > self.max_homopolymer:
            return HOMOPOLYMER

        if self.exclusions:
            offset = candidate.nt_length - len(candidate.tail)
            if self.exclusions.first_hit_in_suffix(candidate.tail, offset) is not None:
                return EXCLUSION

        if self.enforce_unique_sixmers and candidate.repeats_window():
            return SIXMER

        pos = candidate.length - 1
        if (
            self.enforce_codon_run_diversity
            and candidate.codon_run > self.max_codon_run
            and not (exempt_runs and pos in exempt_runs)
        ):
            return CODON_RUN

        if self.enforce_repeat_encoding and repeats and pos in repeats:
            width = REPEAT_PEPTIDE_LENGTH * 3
            current = candidate.tail[-width:]
            for start in repeats[pos]:
                if candidate.codon_slice(start, start + REPEAT_PEPTIDE_LENGTH) == current:
                    return REPEAT_ENCODING

        return None

    def check(self, candidate: Candidate) -> bool:
        return self.violation(candidate) is None

    def session(self, protein: str, codon_table=None) -> "ConstraintSession":
        return ConstraintSession(self, protein, codon_table)

    def describe(self) -> Dict[str, object]:
        return {
            "exclusion_patterns": len(self.exclusions),
            "enforce_unique_sixmers": self.enforce_unique_sixmers,
            "enforce_homopolymer_diversity": self.enforce_homopolymer_diversity,
            "max_homopolymer": self.max_homopolymer,
            "enforce_codon_run_diversity": self.enforce_codon_run_diversity,
            "max_codon_run": self.max_codon_run,
            "enforce_repeat_encoding": self.enforce_repeat_encoding,
        }


class ConstraintSession:
    """
    Per-protein state for one search: the repeated-peptide map, the positions
    whose residue has a single codon, and rejection counts per rule.
    """

    def __init__(self, engine: ConstraintEngine, protein: str, codon_table=None):
        self.engine = engine
        self.protein = protein
        self.rejections: Counter = Counter()

        if codon_table is not None:
            single = {aa for aa in set(protein) if len(codon_table.synonyms(aa)) == 1}
        else:
            single = {"M", "W"}

        self.repeats = find_repeated_peptides(protein, single) if engine.enforce_repeat_encoding else {}
        self.exempt_runs = frozenset(i for i, aa in enumerate(protein) if aa in single)

    def check(self, candidate: Candidate) -> bool:
        rule = self.engine.violation(candidate, self.repeats, self.exempt_runs)
        if rule is not None:
            self.rejections[rule] += 1
            return False
        return True
