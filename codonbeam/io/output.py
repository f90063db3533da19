import csv
from typing import Any, Dict, List, Sequence, Tuple

from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

METRICS_FIELDS = [
    "sequence_id",
    "source_record",
    "source_file",
    "job_index",

    "optimization_mode",
    "beam_width",
    "paths_per_state",
    "success",
    "error_code",
    "failure_reason",
    "failed_at",

    "protein_length",
    "length",
    "score",
    "elapsed_ms",
    "gc_content",
    "max_homopolymer",
    "codon_entropy",
    "exclusion_hits",
    "repeated_sixmers",

    "enforce_unique_sixmers",
    "enforce_homopolymer_diversity",
    "max_homopolymer_limit",
    "enforce_codon_run_diversity",
    "enforce_repeat_encoding",
    "exclusion_patterns",

    "rejected_exclusion",
    "rejected_homopolymer",
    "rejected_sixmer",
    "rejected_codon_run",
    "rejected_repeat_encoding",

    "score_table_path",
]


def write_fasta(records: Sequence[Tuple[str, str]], path: str) -> int:
    """records: (sequence_id, dna). Returns the number written."""
    seq_records = [SeqRecord(Seq(dna), id=seq_id, description="") for seq_id, dna in records]
    return SeqIO.write(seq_records, path, "fasta")


def write_metrics(rows: List[Dict[str, Any]], path: str, fieldnames: Sequence[str] = METRICS_FIELDS) -> None:
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(fieldnames), delimiter="\t")
        writer.writeheader()
        for r in rows:
            writer.writerow({k: r.get(k, "") for k in fieldnames})


def write_outputs(records, rows, fasta_path: str, tsv_path: str) -> None:
    write_fasta(records, fasta_path)
    write_metrics(rows, tsv_path)
