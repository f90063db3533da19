import csv
import json

import pandas as pd
import pytest
from Bio import SeqIO

from codonbeam.exceptions import InputFormatError
from codonbeam.io.exclusions import (
    enzyme_names_to_exclusion_text,
    enzymes_for_promoter,
    load_exclusions,
    recognition_site,
)
from codonbeam.io.output import METRICS_FIELDS, write_outputs
from codonbeam.io.score_tables import load_score_table


# ---------------------------
# Score tables
# ---------------------------

def test_json_with_wrapper(score_table_json):
    table = load_score_table(score_table_json)
    assert table.get("MKT", "ATGAAGACC") == 1.0
    assert len(table) == 1


def test_json_bare_mapping(tmp_path):
    path = tmp_path / "bare.json"
    path.write_text(json.dumps({"MKT": {"ATGAAAACC": -0.25}}))
    assert load_score_table(str(path)).get("MKT", "ATGAAAACC") == -0.25


@pytest.mark.parametrize("payload", [
    "not json",
    json.dumps([1, 2, 3]),
    json.dumps({"MK": {"ATGAAAACC": 1.0}}),
    json.dumps({"MKT": {"ATGAAA": 1.0}}),
    json.dumps({"MKT": {"ATGAAAACC": "high"}}),
    json.dumps({"MKT": {"ATGAAAACC": float("nan")}}),
    json.dumps({"MKT": {"ATGAAAACC": float("inf")}}),
    '{"MKT": {"ATGAAAACC": -Infinity}}',
])
def test_json_rejects_malformed(tmp_path, payload):
    path = tmp_path / "bad.json"
    path.write_text(payload)
    with pytest.raises(InputFormatError):
        load_score_table(str(path))


def test_json_keys_upper_cased(tmp_path):
    path = tmp_path / "lower.json"
    path.write_text(json.dumps({"ninemer_scores": {"mkt": {"atgaaaacc": 2}}}))
    table = load_score_table(str(path))
    assert table.get("MKT", "ATGAAAACC") == 2.0
    assert isinstance(table.get("MKT", "ATGAAAACC"), float)


def test_tsv_and_csv(tmp_path):
    tsv = tmp_path / "scores.tsv"
    tsv.write_text("aa_triplet\tninemer\tscore\nMKT\tATGAAAACC\t1.5\nmkt\tatgaagacc\t-2\n")
    table = load_score_table(str(tsv))
    assert table.get("MKT", "ATGAAAACC") == 1.5
    assert table.get("MKT", "ATGAAGACC") == -2.0

    csv_path = tmp_path / "scores.csv"
    csv_path.write_text("AA_Triplet,Ninemer,Score\nMKT,ATGAAAACC,0.5\n")
    assert load_score_table(str(csv_path)).get("MKT", "ATGAAAACC") == 0.5


def test_xlsx_sheet(tmp_path):
    path = tmp_path / "scores.xlsx"
    df = pd.DataFrame({"aa_triplet": ["MKT"], "ninemer": ["ATGAAAACC"], "score": [3.0]})
    df.to_excel(path, sheet_name="yeast", index=False)
    assert load_score_table(str(path), sheet_name="yeast").get("MKT", "ATGAAAACC") == 3.0


def test_tabular_errors(tmp_path):
    missing = tmp_path / "missing_col.tsv"
    missing.write_text("aa_triplet\tninemer\nMKT\tATGAAAACC\n")
    with pytest.raises(InputFormatError):
        load_score_table(str(missing))

    bad = tmp_path / "bad_score.tsv"
    bad.write_text("aa_triplet\tninemer\tscore\nMKT\tATGAAAACC\thigh\n")
    with pytest.raises(InputFormatError):
        load_score_table(str(bad))

    infinite = tmp_path / "inf_score.tsv"
    infinite.write_text("aa_triplet\tninemer\tscore\nMKT\tATGAAAACC\tinf\n")
    with pytest.raises(InputFormatError):
        load_score_table(str(infinite))


def test_missing_or_unsupported_file(tmp_path):
    with pytest.raises(InputFormatError):
        load_score_table(str(tmp_path / "nope.json"))
    other = tmp_path / "scores.yaml"
    other.write_text("MKT: {}")
    with pytest.raises(InputFormatError):
        load_score_table(str(other))


# ---------------------------
# Exclusions
# ---------------------------

def test_recognition_site():
    assert recognition_site("BsaI") == "GGTCTC"
    assert recognition_site(" ecori ") == "GAATTC"
    with pytest.raises(InputFormatError):
        recognition_site("NotAnEnzyme")


def test_enzyme_text_includes_reverse_complement():
    text = enzyme_names_to_exclusion_text(["BsaI", "EcoRI", ""])
    sites = [line.split("#")[0].strip() for line in text.splitlines()]
    assert sites == ["GGTCTC", "GAGACC", "GAATTC"]


def test_golden_gate_and_promoter():
    golden = load_exclusions(golden_gate=True)
    assert len(golden) == 8
    assert {"GGTCTC", "GAGACC", "CGTCTC", "GAGACG"} <= {p.pattern for p in golden}

    assert enzymes_for_promoter("aox1") == ["PmeI", "SwaI"]
    assert {p.pattern for p in load_exclusions(promoter="AOX1")} == {"GTTTAAAC", "ATTTAAAT"}
    with pytest.raises(InputFormatError):
        enzymes_for_promoter("T7")


def test_load_exclusions_merges_sources(tmp_path):
    path = tmp_path / "exclusions.txt"
    path.write_text("# vector sites\nGAATTC\nTAG@codon\n")
    exclusions = load_exclusions(path=str(path), motifs=["GG[AT]CC", "GAATTC"], enzymes=["BsaI"])
    assert [p.pattern for p in exclusions] == ["GAATTC", "TAG", "GG[AT]CC", "GGTCTC", "GAGACC"]
    assert exclusions.patterns[1].codon_aligned

    with pytest.raises(InputFormatError):
        load_exclusions(path=str(tmp_path / "missing.txt"))


# ---------------------------
# Output
# ---------------------------

def test_write_outputs(tmp_path):
    fasta = tmp_path / "out.fasta"
    tsv = tmp_path / "metrics.tsv"
    write_outputs(
        [("rec1|job0001", "ATGAAAACC")],
        [{"sequence_id": "rec1|job0001", "success": 1, "score": 0.5, "unexpected": "dropped"}],
        str(fasta),
        str(tsv),
    )

    records = list(SeqIO.parse(str(fasta), "fasta"))
    assert [(r.id, str(r.seq)) for r in records] == [("rec1|job0001", "ATGAAAACC")]

    with open(tsv, newline="") as f:
        rows = list(csv.DictReader(f, delimiter="\t"))
    assert list(rows[0]) == METRICS_FIELDS
    assert rows[0]["score"] == "0.5"
    assert rows[0]["failure_reason"] == ""
