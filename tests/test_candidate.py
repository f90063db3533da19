from codonbeam.core.candidate import Candidate


def build(*codons, tail_length=9, track_windows=True):
    cand = Candidate.root()
    for codon in codons:
        cand = cand.extend(codon, 1.0, tail_length, track_windows)
    return cand


def test_extend_shares_prefix():
    parent = build("ATG", "AAA")
    a = parent.extend("ACC", 0.5, 9)
    b = parent.extend("ACG", 0.25, 9)
    assert a.prefix[1] is parent.prefix
    assert b.prefix[1] is parent.prefix
    assert a.sequence() == "ATGAAAACC"
    assert b.sequence() == "ATGAAAACG"
    assert parent.sequence() == "ATGAAA"
    assert a.score == 2.5
    assert a.length == 3 and a.nt_length == 9


def test_tail_is_bounded():
    cand = build("ATG", "AAA", "ACC", "GGG", "TTC")
    assert cand.tail == "ACCGGGTTC"
    assert cand.codon == "TTC"
    assert cand.codons() == ["ATG", "AAA", "ACC", "GGG", "TTC"]


def test_nucleotide_run_spans_codons():
    first = build("AAA")
    assert first.max_new_run == 3
    second = first.extend("AAG", 0.0, 9)
    assert second.max_new_run == 5
    third = second.extend("GCT", 0.0, 9)
    assert third.max_new_run == 2


def test_codon_run():
    cand = build("AAA", "AAA")
    assert cand.codon_run == 2
    assert cand.extend("AAG", 0.0, 9).codon_run == 1


def test_new_windows():
    assert build("ATG").new_windows == ()
    assert build("ATG", "AAA").new_windows == ("ATGAAA",)
    assert build("ATG", "AAA", "ACC").new_windows == ("TGAAAA", "GAAAAC", "AAAACC")
    assert build("ATG", "AAA", track_windows=False).new_windows == ()


def test_repeats_window():
    three = build("AAA", "CCC", "AAA")
    assert not three.repeats_window()
    assert three.extend("CCC", 0.0, 9).repeats_window()
    assert not three.extend("CCG", 0.0, 9).repeats_window()


def test_sixmers_cover_whole_sequence():
    cand = build("ATG", "AAA", "ACC", "GGG")
    dna = cand.sequence()
    assert cand.sixmers == {dna[i:i + 6] for i in range(len(dna) - 5)}


def test_codon_slice():
    cand = build("ATG", "AAA", "ACC", "GGG")
    assert cand.codon_slice(1, 3) == "AAAACC"
    assert cand.codon_slice(0, 4) == cand.sequence()
