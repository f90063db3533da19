# codonbeam/core/scoring.py

from __future__ import annotations

from typing import Dict, Iterator, Mapping, Optional

from codonbeam.defaults import DEFAULT_BOUNDARY_SCORE, NEUTRAL_SCORE
from codonbeam.exceptions import MissingContext

NinemerScores = Mapping[str, Mapping[str, float]]  # AA triplet -> {9-nt window -> score}


class ScoreTable:
    """
    Read-only view over a precomputed 9-mer score mapping.

    The mapping is referenced, not copied; load it once and share the
    ScoreTable between optimizers.
    """

    def __init__(self, scores: NinemerScores):
        self._scores = scores

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, aa_triplet: str) -> bool:
        return aa_triplet in self._scores

    def __iter__(self) -> Iterator[str]:
        return iter(self._scores)

    def __repr__(self):
        return f"ScoreTable({len(self._scores)} contexts)"

    def get(self, aa_triplet: str, ninemer: str) -> Optional[float]:
        windows = self._scores.get(aa_triplet)
        if windows is None:
            return None
        return windows.get(ninemer)

    def require(self, aa_triplet: str) -> Mapping[str, float]:
        try:
            return self._scores[aa_triplet]
        except KeyError:
            raise MissingContext(aa_triplet)


class ContextScorer:
    """
    Scores one codon placement by the 9-nt window it completes.

    The window is the two preceding codons plus the candidate codon. Where
    fewer than two codons precede it (the first two positions of a protein)
    no window exists and boundary_score is returned without a lookup.
    Contexts or windows absent from the table score as neutral.
    """

    def __init__(
        self,
        score_table: ScoreTable,
        boundary_score: float = DEFAULT_BOUNDARY_SCORE,
        missing_score: float = NEUTRAL_SCORE,
    ):
        if not isinstance(score_table, ScoreTable):
            score_table = ScoreTable(score_table)
        self.score_table = score_table
        self.boundary_score = float(boundary_score)
        self.missing_score = float(missing_score)

    def score(self, preceding: str, codon: str, aa_context: str) -> float:
        if len(preceding) < 6 or len(aa_context) < 3:
            return self.boundary_score
        ninemer = preceding[-6:] + codon
        value = self.score_table.get(aa_context[-3:], ninemer)
        if value is None:
            return self.missing_score
        return float(value)

    def score_sequence(self, dna: str, protein: str) -> float:
        """Total score of a complete sequence; equals the search's cumulative score."""
        total = 0.0
        for pos in range(len(protein)):
            start = pos * 3
            total += self.score(dna[max(0, start - 6):start], dna[start:start + 3], protein[max(0, pos - 2):pos + 1])
        return total


def build_score_table(rows) -> Dict[str, Dict[str, float]]:
    """Nest (aa_triplet, ninemer, score) rows into the triplet -> window -> score mapping."""
    table: Dict[str, Dict[str, float]] = {}
    for aa_triplet, ninemer, score in rows:
        table.setdefault(str(aa_triplet).strip().upper(), {})[str(ninemer).strip().upper()] = float(score)
    return table
