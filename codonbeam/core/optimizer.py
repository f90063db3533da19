# codonbeam/core/optimizer.py

import heapq
import time
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from codonbeam.core.candidate import Candidate
from codonbeam.core.codon_table import CodonTable
from codonbeam.core.constraints import ConstraintEngine, ExclusionSet
from codonbeam.core.scoring import ContextScorer, ScoreTable
from codonbeam.defaults import (
    DEFAULT_BEAM_WIDTH,
    DEFAULT_BOUNDARY_SCORE,
    DEFAULT_GENETIC_CODE,
    DEFAULT_MAX_CODON_RUN,
    DEFAULT_MAX_HOMOPOLYMER,
    DEFAULT_PATHS_PER_STATE,
)
from codonbeam.exceptions import ConstraintError, InputFormatError, NoValidSequence
from codonbeam.utils import clean_protein_sequence

NO_VALID_SEQUENCE = "NoValidSequence"
TRANSLATION_MISMATCH = "TranslationMismatch"


def _by_score(c: Candidate) -> float:
    return c.score


@dataclass
class OptimizationResult:
    success: bool
    dna_sequence: Optional[str] = None
    score: Optional[float] = None
    elapsed_ms: float = 0.0
    error: Optional[str] = None
    error_code: Optional[str] = None
    failed_at: Optional[int] = None  # 1-based residue position where the beam emptied
    rejections: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class BeamSearchOptimizer:
    """
    Back-translates a protein by beam search over synonymous codons.

    At each residue every live candidate is extended by every synonym; the
    extension is scored by the 9-mer it completes and dropped if it breaks a
    constraint. The best beam_width candidates survive. Ties keep generation
    order (parent rank, then codon order), so identical inputs give identical
    results.

    The score table, codon table and exclusion set are read-only and may be
    shared between optimizers and between concurrent optimize() calls.
    """

    mode = "beam"

    def __init__(
        self,
        score_table,
        beam_width: int = DEFAULT_BEAM_WIDTH,
        exclusions=None,
        enforce_unique_sixmers: bool = True,
        enforce_homopolymer_diversity: bool = True,
        max_homopolymer: int = DEFAULT_MAX_HOMOPOLYMER,
        enforce_codon_run_diversity: bool = False,
        max_codon_run: int = DEFAULT_MAX_CODON_RUN,
        enforce_repeat_encoding: bool = False,
        boundary_score: float = DEFAULT_BOUNDARY_SCORE,
        genetic_code: int = DEFAULT_GENETIC_CODE,
        codon_table: Optional[CodonTable] = None,
        logger=None,
    ):
        try:
            beam_width = int(beam_width)
        except (TypeError, ValueError):
            raise InputFormatError(f"beam_width must be a positive integer; got {beam_width!r}")
        if beam_width < 1:
            raise InputFormatError(f"beam_width must be a positive integer; got {beam_width}")

        if exclusions is not None and not isinstance(exclusions, ExclusionSet):
            exclusions = ExclusionSet.from_text(exclusions)

        self.beam_width = beam_width
        self.codon_table = codon_table or CodonTable(genetic_code)
        self.scorer = ContextScorer(
            score_table if isinstance(score_table, ScoreTable) else ScoreTable(score_table),
            boundary_score=boundary_score,
        )
        self.constraints = ConstraintEngine(
            exclusions=exclusions,
            enforce_unique_sixmers=enforce_unique_sixmers,
            enforce_homopolymer_diversity=enforce_homopolymer_diversity,
            max_homopolymer=max_homopolymer,
            enforce_codon_run_diversity=enforce_codon_run_diversity,
            max_codon_run=max_codon_run,
            enforce_repeat_encoding=enforce_repeat_encoding,
        )
        self.logger = logger

    def __repr__(self):
        return f"{type(self).__name__}(beam_width={self.beam_width}, constraints={self.constraints.describe()})"

    def optimize(self, protein: str) -> OptimizationResult:
        """
        Raises InputFormatError (EmptySequence, UnknownResidue) before any
        search work for invalid input. Search exhaustion is returned as a
        failed result with error_code 'NoValidSequence'.
        """
        start_time = time.perf_counter()
        protein = self.codon_table.validate(clean_protein_sequence(protein))
        n = len(protein)

        session = self.constraints.session(protein, self.codon_table)
        tail_length = self.constraints.context_length
        track_windows = self.constraints.enforce_unique_sixmers
        logger = self.logger

        beam: List[Candidate] = [Candidate.root()]

        for pos, aa in enumerate(protein):
            codons = self.codon_table.synonyms(aa)
            aa_context = protein[max(0, pos - 2):pos + 1]
            expanded: List[Candidate] = []

            for parent in beam:
                preceding = parent.tail
                for codon in codons:
                    delta = self.scorer.score(preceding, codon, aa_context)
                    child = parent.extend(codon, delta, tail_length, track_windows)
                    if session.check(child):
                        expanded.append(child)

            beam = self._prune(expanded)

            if not beam:
                elapsed_ms = (time.perf_counter() - start_time) * 1000.0
                message = (
                    f"All candidates excluded at position {pos + 1}/{n} ('{aa}'). "
                    f"Rejections: {_format_counts(session.rejections)}. "
                    "Relax constraints, shorten the exclusion list or widen the beam."
                )
                if logger:
                    logger.warning(message)
                return OptimizationResult(
                    success=False,
                    elapsed_ms=elapsed_ms,
                    error=message,
                    error_code=NO_VALID_SEQUENCE,
                    failed_at=pos + 1,
                    rejections=dict(session.rejections),
                )

            if logger:
                logger.debug(
                    f"{pos + 1}/{n} {aa}: kept {len(beam)}/{len(expanded)}, best={beam[0].score:.4f}"
                )

        best = beam[0]
        dna = best.sequence()
        elapsed_ms = (time.perf_counter() - start_time) * 1000.0

        translated = self.codon_table.translate(dna)
        if translated != protein:
            message = f"Translation verification failed. Expected {n} AA, got {len(translated)}"
            if logger:
                logger.error(message)
            return OptimizationResult(
                success=False,
                elapsed_ms=elapsed_ms,
                error=message,
                error_code=TRANSLATION_MISMATCH,
                rejections=dict(session.rejections),
            )

        if logger:
            logger.debug(f"{self.mode} search done: {n} AA, score={best.score:.4f}, {elapsed_ms:.1f} ms")

        return OptimizationResult(
            success=True,
            dna_sequence=dna,
            score=best.score,
            elapsed_ms=elapsed_ms,
            rejections=dict(session.rejections),
        )

    def _prune(self, expanded: List[Candidate]) -> List[Candidate]:
        # nlargest matches sorted(..., reverse=True)[:k], which keeps generation order on ties
        return heapq.nlargest(self.beam_width, expanded, key=_by_score)


class StatePrunedOptimizer(BeamSearchOptimizer):
    """
    Beam search with pruning by state.

    The last two codons fully determine every future 9-mer score, so
    candidates are grouped by them. Up to paths_per_state candidates are kept
    inside each group (they differ only in history, which matters for the
    constraints), then the beam_width best groups overall.
    """

    mode = "dp"

    def __init__(self, score_table, beam_width: int = DEFAULT_BEAM_WIDTH, paths_per_state: int = DEFAULT_PATHS_PER_STATE, **kwargs):
        super().__init__(score_table, beam_width=beam_width, **kwargs)
        if int(paths_per_state) < 1:
            raise InputFormatError(f"paths_per_state must be a positive integer; got {paths_per_state}")
        self.paths_per_state = int(paths_per_state)

    def _prune(self, expanded: List[Candidate]) -> List[Candidate]:
        groups: Dict[str, List[Candidate]] = {}
        for cand in expanded:
            groups.setdefault(cand.tail[-6:], []).append(cand)

        kept = [heapq.nlargest(self.paths_per_state, members, key=_by_score) for members in groups.values()]
        if len(kept) > self.beam_width:
            kept = heapq.nlargest(self.beam_width, kept, key=lambda g: g[0].score)

        survivors = [c for group in kept for c in group]
        survivors.sort(key=_by_score, reverse=True)
        return survivors


OPTIMIZERS = {
    BeamSearchOptimizer.mode: BeamSearchOptimizer,
    StatePrunedOptimizer.mode: StatePrunedOptimizer,
}


def build_optimizer(score_table, optimization_mode: str = "beam", **kwargs) -> BeamSearchOptimizer:
    mode = (optimization_mode or "beam").strip().lower()
    if mode not in OPTIMIZERS:
        raise InputFormatError(f"optimization_mode must be one of {sorted(OPTIMIZERS)}; got {optimization_mode!r}")
    if mode != StatePrunedOptimizer.mode:
        kwargs.pop("paths_per_state", None)
    return OPTIMIZERS[mode](score_table, **kwargs)


def optimize_sequence(protein=None, score_table=None, optimization_mode="beam", **kwargs) -> OptimizationResult:
    """
    One-shot helper: build an optimizer, run it, raise on failure.

    optimization_mode:
      - 'beam': top-K candidates by cumulative score
      - 'dp': top-K last-two-codon states, several paths per state
    """
    if protein is None:
        raise InputFormatError("optimize_sequence requires a protein sequence.")
    if score_table is None:
        raise InputFormatError("score_table is required.")

    optimizer = build_optimizer(score_table, optimization_mode=optimization_mode, **kwargs)
    result = optimizer.optimize(protein)
    if result.success:
        return result
    if result.error_code == NO_VALID_SEQUENCE:
        raise NoValidSequence(result.error, position=result.failed_at)
    raise ConstraintError(result.error)


def _format_counts(counts) -> str:
    if not counts:
        return "none"
    return ", ".join(f"{k}={v}" for k, v in sorted(counts.items()))
