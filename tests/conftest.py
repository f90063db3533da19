import itertools
import json
import logging
import random

import pytest

from codonbeam.core.codon_table import CodonTable
from codonbeam.core.scoring import ContextScorer, ScoreTable


@pytest.fixture
def codon_table():
    return CodonTable()


@pytest.fixture
def zero_table():
    # every lookup misses, so every placement scores 0
    return ScoreTable({})


@pytest.fixture
def random_scores(codon_table):
    """Factory: a dense, reproducible score table covering every window of a protein."""

    def make(protein, seed=7):
        rng = random.Random(seed)
        table = {}
        for pos in range(2, len(protein)):
            triplet = protein[pos - 2:pos + 1]
            windows = table.setdefault(triplet, {})
            for combo in itertools.product(*(codon_table.synonyms(aa) for aa in triplet)):
                ninemer = "".join(combo)
                if ninemer not in windows:
                    windows[ninemer] = round(rng.uniform(-1.0, 1.0), 4)
        return ScoreTable(table)

    return make


@pytest.fixture
def brute_force_best(codon_table):
    """Factory: highest total score over every back-translation, ignoring constraints."""

    def best(protein, score_table):
        scorer = ContextScorer(score_table)
        return max(
            scorer.score_sequence("".join(combo), protein)
            for combo in itertools.product(*(codon_table.synonyms(aa) for aa in protein))
        )

    return best


@pytest.fixture
def score_table_json(tmp_path):
    path = tmp_path / "scores.json"
    path.write_text(json.dumps({"ninemer_scores": {"MKT": {"ATGAAGACC": 1.0}}}))
    return str(path)


@pytest.fixture
def test_logger():
    # outside the 'codonbeam' hierarchy so caplog sees it after setup_logger() ran
    return logging.getLogger("tests.codonbeam")
