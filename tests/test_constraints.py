import pytest

from codonbeam.core.candidate import Candidate
from codonbeam.core.codon_table import CodonTable
from codonbeam.core.constraints import (
    CODON_RUN,
    EXCLUSION,
    HOMOPOLYMER,
    REPEAT_ENCODING,
    SIXMER,
    ConstraintEngine,
    ExclusionPattern,
    ExclusionSet,
    find_repeated_peptides,
)
from codonbeam.exceptions import InputFormatError


def build(engine, *codons):
    cand = Candidate.root()
    for codon in codons:
        cand = cand.extend(codon, 0.0, engine.context_length, engine.enforce_unique_sixmers)
    return cand


# ---------------------------
# Exclusion patterns
# ---------------------------

def test_exclusion_text_format():
    text = """
    # cloning sites
    GAATTC   # EcoRI
    >BsaI
    GGTCTC

    gaattc
    """
    exclusions = ExclusionSet.from_text(text)
    assert len(exclusions) == 2
    assert [p.name for p in exclusions] == ["GAATTC", "BsaI"]


def test_overlapping_matches():
    pat = ExclusionPattern.parse("AA")
    assert [s for s, _ in pat.finditer("AAAA")] == [0, 1, 2]
    assert len(ExclusionSet.from_motifs(["AA"]).find_all("AAAA")) == 3


def test_iupac_pattern():
    pat = ExclusionPattern.parse("GCNGC")
    assert pat.width == 5
    assert list(pat.finditer("AAGCAGCTT")) == [(2, 7)]
    assert list(pat.finditer("AAGCAGGTT")) == []


def test_rna_pattern_matches_dna():
    pat = ExclusionPattern.parse("GAAUUC")
    assert list(pat.finditer("CGAATTC")) == [(1, 7)]


def test_codon_aligned_pattern():
    pat = ExclusionPattern.parse("TAG@codon")
    assert pat.codon_aligned
    assert list(pat.finditer("TAGATAG")) == [(0, 3)]
    assert list(pat.finditer("ATAG", offset=2)) == [(3, 6)]


def test_regex_pattern():
    pat = ExclusionPattern.parse("GG[AT]CC")
    assert pat.width is None
    assert [s for s, _ in pat.finditer("GGACCGGTCC")] == [0, 5]


@pytest.mark.parametrize("bad", ["GG[AT", "A*", "@codon"])
def test_invalid_patterns(bad):
    with pytest.raises(InputFormatError):
        ExclusionPattern.parse(bad)


def test_hit_must_end_in_new_codon():
    exclusions = ExclusionSet.from_motifs(["GAATTC"])
    assert exclusions.first_hit_in_suffix("AAAGAATTC", 0) is not None
    assert exclusions.first_hit_in_suffix("GAATTCAAA", 0) is None


def test_context_length_follows_patterns():
    assert ConstraintEngine().context_length == 9
    assert ConstraintEngine(exclusions="GAATTC").context_length == 9
    assert ConstraintEngine(exclusions="GCGGCCGCTTAA").context_length == 14
    assert ConstraintEngine(exclusions="GG[AT]CC").context_length == 102
    assert ConstraintEngine(enforce_repeat_encoding=True).context_length == 18


# ---------------------------
# Engine rules
# ---------------------------

def test_homopolymer_rule():
    engine = ConstraintEngine(max_homopolymer=4)
    assert engine.check(build(engine, "AAA", "AGG"))
    assert engine.violation(build(engine, "AAA", "AAG")) == HOMOPOLYMER

    relaxed = ConstraintEngine(enforce_homopolymer_diversity=False)
    assert relaxed.check(build(relaxed, "AAA", "AAG"))


def test_exclusion_rule():
    engine = ConstraintEngine(exclusions="GAATTC")
    assert engine.violation(build(engine, "GAA", "TTC")) == EXCLUSION
    assert engine.check(build(engine, "GAA", "TTT"))


def test_sixmer_rule():
    engine = ConstraintEngine()
    assert engine.violation(build(engine, "AAA", "CCC", "AAA", "CCC")) == SIXMER

    relaxed = ConstraintEngine(enforce_unique_sixmers=False)
    assert relaxed.check(build(relaxed, "AAA", "CCC", "AAA", "CCC"))


def test_codon_run_rule():
    engine = ConstraintEngine(enforce_codon_run_diversity=True, max_codon_run=2, enforce_unique_sixmers=False)
    assert engine.check(build(engine, "CTG", "CTG"))
    assert engine.violation(build(engine, "CTG", "CTG", "CTG")) == CODON_RUN


def test_codon_run_exempts_single_codon_residues():
    engine = ConstraintEngine(enforce_codon_run_diversity=True, max_codon_run=1, enforce_unique_sixmers=False)
    session = engine.session("MMM", CodonTable())
    assert session.check(build(engine, "ATG", "ATG", "ATG"))
    assert not session.rejections


def test_find_repeated_peptides():
    assert find_repeated_peptides("ACDEFGACDEFG") == {11: [0]}
    assert find_repeated_peptides("ACDEFGHACDEFG") == {12: [0]}
    assert find_repeated_peptides("MMMMMMM", {"M"}) == {}


def test_repeat_encoding_rule():
    engine = ConstraintEngine(enforce_unique_sixmers=False, enforce_repeat_encoding=True)
    session = engine.session("ACDEFGACDEFG", CodonTable())
    first = ["GCT", "TGT", "GAT", "GAA", "TTT", "GGT"]

    same = build(engine, *(first + first))
    assert not session.check(same)
    assert session.rejections[REPEAT_ENCODING] == 1

    different = build(engine, *(first + first[:-1] + ["GGC"]))
    assert session.check(different)


def test_invalid_bounds():
    with pytest.raises(InputFormatError):
        ConstraintEngine(max_homopolymer=0)
    with pytest.raises(InputFormatError):
        ConstraintEngine(max_codon_run=0)
