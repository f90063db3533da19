import os
from typing import Iterable, List, Optional

from Bio.Restriction.Restriction_Dictionary import rest_dict
from Bio.Seq import reverse_complement

from codonbeam.core.constraints import ExclusionSet
from codonbeam.defaults import (
    DEFAULT_FORBIDDEN_MOTIFS,
    DEFAULT_MAX_PATTERN_LENGTH,
    GOLDEN_GATE_ENZYMES,
    PROMOTER_RESTRICTION_SITES,
)
from codonbeam.exceptions import InputFormatError

_ENZYMES_BY_LOWER = {name.lower(): name for name in rest_dict}


def read_exclusion_text(path: str) -> str:
    if not os.path.exists(path):
        raise InputFormatError(f"Exclusion file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def recognition_site(enzyme_name: str) -> str:
    name = _ENZYMES_BY_LOWER.get(enzyme_name.strip().lower())
    if name is None:
        raise InputFormatError(f"Unknown restriction enzyme: {enzyme_name!r}")
    return str(rest_dict[name]["site"]).upper()


def enzyme_names_to_exclusion_text(enzyme_names: Iterable[str]) -> str:
    """
    Exclusion lines for the recognition sites of the named enzymes.

    Non-palindromic sites get their reverse complement too, since the enzyme
    cuts whichever strand carries it.
    """
    lines: List[str] = []
    seen = set()
    for enzyme_name in enzyme_names:
        if not enzyme_name or not enzyme_name.strip():
            continue
        site = recognition_site(enzyme_name)
        name = _ENZYMES_BY_LOWER[enzyme_name.strip().lower()]

        # degenerate sites stay in IUPAC form; ExclusionSet expands them
        fwd = site
        rc = reverse_complement(site)

        if fwd not in seen:
            lines.append(f"{fwd}  # {name}")
            seen.add(fwd)
        if rc != fwd and rc not in seen:
            lines.append(f"{rc}  # {name} (reverse complement)")
            seen.add(rc)
    return "\n".join(lines)


def enzymes_for_promoter(promoter: Optional[str]) -> List[str]:
    if not promoter:
        return []
    for key, enzymes in PROMOTER_RESTRICTION_SITES.items():
        if key.lower() == promoter.strip().lower():
            return list(enzymes)
    raise InputFormatError(
        f"Unknown promoter {promoter!r}; known: {', '.join(sorted(PROMOTER_RESTRICTION_SITES))}"
    )


def load_exclusions(
    path: Optional[str] = None,
    motifs: Iterable[str] = (),
    enzymes: Iterable[str] = (),
    golden_gate: bool = False,
    promoter: Optional[str] = None,
    max_pattern_length: int = DEFAULT_MAX_PATTERN_LENGTH,
) -> ExclusionSet:
    """Merge every exclusion source into one ExclusionSet, parsed once."""
    chunks: List[str] = list(DEFAULT_FORBIDDEN_MOTIFS)
    if path:
        chunks.append(read_exclusion_text(path))
    chunks.extend(m for m in motifs if m)

    enzyme_names = list(enzymes)
    if golden_gate:
        enzyme_names.extend(GOLDEN_GATE_ENZYMES)
    enzyme_names.extend(enzymes_for_promoter(promoter))
    if enzyme_names:
        chunks.append(enzyme_names_to_exclusion_text(enzyme_names))

    return ExclusionSet.from_text("\n".join(chunks), max_pattern_length=max_pattern_length)
