import json
import math
import os
from typing import Any, Dict, Optional

import pandas as pd

from codonbeam.core.scoring import ScoreTable, build_score_table
from codonbeam.exceptions import InputFormatError

TABULAR_COLUMNS = {"aa_triplet", "ninemer", "score"}


def load_score_table(path: str, sheet_name: Optional[str] = None) -> ScoreTable:
    """
    Load a 9-mer score table by file extension:
      .json               {"ninemer_scores": {triplet: {ninemer: score}}} or the bare mapping
      .csv .tsv .txt      columns aa_triplet, ninemer, score
      .xlsx .xls          same columns, optional sheet_name
    """
    if not os.path.exists(path):
        raise InputFormatError(f"Score table not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext == ".json":
        return load_score_table_json(path)
    if ext in (".csv", ".tsv", ".txt", ".xlsx", ".xls"):
        return load_score_table_tabular(path, sheet_name=sheet_name)
    raise InputFormatError(f"Unsupported score table format '{ext}' for {path}")


def load_score_table_json(path: str) -> ScoreTable:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InputFormatError(f"Score table {path} is not valid JSON: {e}")

    if isinstance(data, dict) and "ninemer_scores" in data:
        data = data["ninemer_scores"]
    return ScoreTable(_validate_nested(data, path))


def load_score_table_tabular(path: str, sheet_name: Optional[str] = None) -> ScoreTable:
    if path.lower().endswith((".xlsx", ".xls")):
        df = pd.read_excel(path, sheet_name=sheet_name if sheet_name is not None else 0, keep_default_na=False, na_values=[""])
    else:
        sep = "," if path.lower().endswith(".csv") else "\t"
        # keep_default_na off: residue triplets such as "NAN" are not missing values
        df = pd.read_csv(path, sep=sep, dtype=str, keep_default_na=False, na_values=[""])

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = TABULAR_COLUMNS - set(df.columns)
    if missing:
        raise InputFormatError(
            f"Score table {path} is missing required column(s): {', '.join(sorted(missing))}. "
            f"Found columns: {list(df.columns)}"
        )

    df = df.dropna(subset=["aa_triplet", "ninemer"])
    scores = pd.to_numeric(df["score"], errors="coerce")
    bad = df[scores.isna() | scores.isin([math.inf, -math.inf])]
    if len(bad):
        first = bad.iloc[0]
        raise InputFormatError(
            f"Score table {path} has {len(bad)} non-numeric or non-finite score(s), "
            f"first at {first['aa_triplet']}/{first['ninemer']}: {first['score']!r}"
        )

    rows = zip(df["aa_triplet"], df["ninemer"], scores)
    return ScoreTable(build_score_table(rows))


def _validate_nested(data: Any, path: str) -> Dict[str, Dict[str, float]]:
    if not isinstance(data, dict):
        raise InputFormatError(f"Score table {path} must be a mapping of amino-acid triplets")
    rows = []
    for triplet, windows in data.items():
        if len(triplet) != 3:
            raise InputFormatError(f"Score table {path}: key {triplet!r} is not an amino-acid triplet")
        if not isinstance(windows, dict):
            raise InputFormatError(f"Score table {path}: entry {triplet!r} must map 9-mers to scores")
        for ninemer, score in windows.items():
            if (
                len(ninemer) != 9
                or not isinstance(score, (int, float))
                or isinstance(score, bool)
                or not math.isfinite(score)
            ):
                raise InputFormatError(f"Score table {path}: bad entry {triplet}/{ninemer!r}: {score!r}")
            rows.append((triplet, ninemer, score))
    # same key normalization as the tabular loaders
    return build_score_table(rows)
