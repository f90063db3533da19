import os
import csv
from concurrent.futures import ProcessPoolExecutor
from itertools import repeat
from typing import Dict, Any, Iterable, List, Optional, Tuple

from tqdm import tqdm
from Bio import SeqIO

from codonbeam.cli import get_cli_args
from codonbeam.logging_utils import setup_logger
from codonbeam.exceptions import CodonbeamError, InputFormatError
from codonbeam.defaults import (
    DEFAULT_BEAM_WIDTH,
    DEFAULT_GENETIC_CODE,
    DEFAULT_MAX_CODON_RUN,
    DEFAULT_MAX_HOMOPOLYMER,
    DEFAULT_MAX_PATTERN_LENGTH,
    DEFAULT_PATHS_PER_STATE,
    MAX_INPUT_RECORDS,
)
from codonbeam.utils import (
    clean_protein_sequence,
    is_protein_sequence,
    calculate_gc,
    max_homopolymer_length,
    repeated_windows,
    verify_backtranslation_matches_protein,
)
from codonbeam.core.constraints import CODON_RUN, EXCLUSION, HOMOPOLYMER, REPEAT_ENCODING, SIXMER
from codonbeam.core.optimizer import BeamSearchOptimizer, OptimizationResult, build_optimizer
from codonbeam.core.orf import cds_to_protein
from codonbeam.io.exclusions import load_exclusions
from codonbeam.io.output import write_outputs
from codonbeam.io.score_tables import load_score_table
from codonbeam.metrics.basic import codon_entropy
from codonbeam.metrics.motifs import count_hits


# ---------------------------
# Batch table helpers
# ---------------------------

def iter_batch_table(path: str) -> Iterable[Dict[str, Any]]:
    if not os.path.exists(path):
        raise InputFormatError(f"Batch table not found: {path}")
    delimiter = "\t" if path.lower().endswith(".tsv") else ","
    with open(path, "r", newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        if reader.fieldnames is None:
            raise InputFormatError(f"Batch table has no header row: {path}")

        normalized = [h.strip() if h else h for h in reader.fieldnames]
        reader.fieldnames = normalized

        required = {"sequence", "score_table"}
        missing = required - set(normalized)
        if missing:
            raise InputFormatError(
                f"Batch table is missing required column(s): {', '.join(sorted(missing))}\n"
                f"Found columns: {normalized}\n"
                f"Fix the header to include at least: sequence,score_table"
            )

        for row in reader:
            clean = {}
            for k, v in row.items():
                if k is None:
                    continue
                kk = k.strip()
                vv = v.strip() if isinstance(v, str) else v
                clean[kk] = vv
            yield clean


def _parse_list_field(v: Any, sep: str = "|") -> List[str]:
    if v is None:
        return []
    if isinstance(v, list):
        return v
    s = str(v).strip()
    if not s or s.lower() == "nan":
        return []
    return [x.strip() for x in s.split(sep) if x.strip()]


def _parse_int_or_default(v: Any, default: int) -> int:
    if v is None:
        return default
    if isinstance(v, int):
        return v
    s = str(v).strip()
    if not s or s.lower() == "nan":
        return default
    try:
        return int(s)
    except ValueError:
        raise InputFormatError(f"Expected an integer, got {v!r}")


def _parse_boolish(v: Any, default: bool = False) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if not s or s in ("nan", "none"):
        return default
    if s in ("1", "true", "t", "yes", "y", "on"):
        return True
    if s in ("0", "false", "f", "no", "n", "off"):
        return False
    return default


def _parse_mode(v: Any) -> str:
    if v is None:
        return "beam"
    s = str(v).strip().lower()
    if not s or s in ("nan", "none"):
        return "beam"
    if s not in ("beam", "dp"):
        raise InputFormatError("optimization_mode must be 'beam' or 'dp'")
    return s


def _normalize_optional(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    if not s or s.lower() in ("nan", "none"):
        return None
    return s


# ---------------------------
# Job preparation
# ---------------------------

def merge_defaults(args, row: Dict[str, Any], logger) -> Dict[str, Any]:
    """Row values override CLI values; blank cells keep the CLI value."""
    job = vars(args).copy()

    for k, v in row.items():
        if v in ("", None):
            continue
        job[k] = v

    job["optimization_mode"] = _parse_mode(job.get("optimization_mode"))
    job["beam_width"] = _parse_int_or_default(job.get("beam_width"), DEFAULT_BEAM_WIDTH)
    job["paths_per_state"] = _parse_int_or_default(job.get("paths_per_state"), DEFAULT_PATHS_PER_STATE)
    job["genetic_code"] = _parse_int_or_default(job.get("genetic_code"), DEFAULT_GENETIC_CODE)
    job["max_homopolymer"] = _parse_int_or_default(job.get("max_homopolymer"), DEFAULT_MAX_HOMOPOLYMER)
    job["max_codon_run"] = _parse_int_or_default(job.get("max_codon_run"), DEFAULT_MAX_CODON_RUN)
    job["max_pattern_length"] = _parse_int_or_default(job.get("max_pattern_length"), DEFAULT_MAX_PATTERN_LENGTH)

    job["no_unique_sixmers"] = _parse_boolish(job.get("no_unique_sixmers"), False)
    job["no_homopolymer_check"] = _parse_boolish(job.get("no_homopolymer_check"), False)
    job["codon_run_diversity"] = _parse_boolish(job.get("codon_run_diversity"), False)
    job["repeat_encoding"] = _parse_boolish(job.get("repeat_encoding"), False)
    job["golden_gate"] = _parse_boolish(job.get("golden_gate"), False)
    job["include_stop_codon"] = _parse_boolish(job.get("include_stop_codon"), False)

    job["exclude_motifs"] = _parse_list_field(job.get("exclude_motifs"))
    job["restriction_enzymes"] = _parse_list_field(job.get("restriction_enzymes"), sep=",")
    job["exclusions"] = _normalize_optional(job.get("exclusions"))
    job["promoter"] = _normalize_optional(job.get("promoter"))
    job["score_table_sheet"] = _normalize_optional(job.get("score_table_sheet"))

    job["sequence"] = str(job.get("sequence") or "").strip()
    job["score_table"] = str(job.get("score_table") or "").strip()

    if not job["sequence"]:
        raise InputFormatError("Missing required 'sequence' parameter (path to FASTA).")
    if not job["score_table"]:
        raise InputFormatError("Missing required 'score_table' parameter (path to 9-mer score table).")
    if not os.path.exists(job["sequence"]):
        raise InputFormatError(f"Sequence file not found: {job['sequence']}")

    logger.debug(
        f"Prepared job: seq={job['sequence']}, table={job['score_table']}, "
        f"mode={job['optimization_mode']}, beam_width={job['beam_width']}, "
        f"paths_per_state={job['paths_per_state']}, max_homopolymer={job['max_homopolymer']}, "
        f"unique_sixmers={not job['no_unique_sixmers']}, codon_run={job['codon_run_diversity']}, "
        f"repeat_encoding={job['repeat_encoding']}, exclusions={job['exclusions']}, "
        f"enzymes={job['restriction_enzymes']}, golden_gate={job['golden_gate']}, promoter={job['promoter']}"
    )

    return job


def build_job_optimizer(job: Dict[str, Any], score_table, logger=None) -> BeamSearchOptimizer:
    exclusions = load_exclusions(
        path=job["exclusions"],
        motifs=job["exclude_motifs"],
        enzymes=job["restriction_enzymes"],
        golden_gate=job["golden_gate"],
        promoter=job["promoter"],
        max_pattern_length=job["max_pattern_length"],
    )
    if exclusions and logger:
        logger.info(f"Loaded {len(exclusions)} exclusion pattern(s)")

    return build_optimizer(
        score_table,
        optimization_mode=job["optimization_mode"],
        beam_width=job["beam_width"],
        paths_per_state=job["paths_per_state"],
        exclusions=exclusions,
        enforce_unique_sixmers=not job["no_unique_sixmers"],
        enforce_homopolymer_diversity=not job["no_homopolymer_check"],
        max_homopolymer=job["max_homopolymer"],
        enforce_codon_run_diversity=job["codon_run_diversity"],
        max_codon_run=job["max_codon_run"],
        enforce_repeat_encoding=job["repeat_encoding"],
        genetic_code=job["genetic_code"],
        logger=logger,
    )


def load_protein_records(path: str, genetic_code: int = DEFAULT_GENETIC_CODE) -> List[Tuple[str, str]]:
    """
    (record_id, protein) for every non-empty FASTA record. DNA/RNA CDS records
    are translated; a terminal stop is stripped.
    """
    out = []
    for rec in SeqIO.parse(path, "fasta"):
        raw_seq = clean_protein_sequence(str(rec.seq))
        if not raw_seq:
            continue
        if is_protein_sequence(raw_seq):
            protein = raw_seq
        else:
            protein = cds_to_protein(raw_seq, record_id=rec.id, table=genetic_code)
        out.append((rec.id, protein))
    return out


def _run_optimizer(optimizer: BeamSearchOptimizer, protein: str) -> OptimizationResult:
    return optimizer.optimize(protein)


def run_records(optimizer: BeamSearchOptimizer, proteins: List[str], workers: int = 1) -> List[OptimizationResult]:
    """Optimize every protein; results come back in input order."""
    if workers <= 1 or len(proteins) < 2:
        return [optimizer.optimize(p) for p in proteins]

    # loggers do not cross process boundaries
    logger, optimizer.logger = optimizer.logger, None
    try:
        chunksize = max(1, len(proteins) // (workers * 4))
        with ProcessPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(_run_optimizer, repeat(optimizer), proteins, chunksize=chunksize))
    finally:
        optimizer.logger = logger


def metrics_row(
    job: Dict[str, Any],
    job_idx: int,
    record_id: str,
    protein: str,
    result: OptimizationResult,
    optimizer: BeamSearchOptimizer,
) -> Dict[str, Any]:
    constraints = optimizer.constraints
    row = {
        "sequence_id": f"{record_id}|job{job_idx:04d}",
        "source_record": record_id,
        "source_file": job["sequence"],
        "job_index": job_idx,

        "optimization_mode": optimizer.mode,
        "beam_width": optimizer.beam_width,
        "paths_per_state": getattr(optimizer, "paths_per_state", ""),
        "success": int(result.success),
        "error_code": result.error_code or "",
        "failure_reason": result.error or "",
        "failed_at": result.failed_at or "",

        "protein_length": len(protein),
        "elapsed_ms": round(result.elapsed_ms, 3),

        "enforce_unique_sixmers": int(constraints.enforce_unique_sixmers),
        "enforce_homopolymer_diversity": int(constraints.enforce_homopolymer_diversity),
        "max_homopolymer_limit": constraints.max_homopolymer,
        "enforce_codon_run_diversity": int(constraints.enforce_codon_run_diversity),
        "enforce_repeat_encoding": int(constraints.enforce_repeat_encoding),
        "exclusion_patterns": len(constraints.exclusions),

        "rejected_exclusion": result.rejections.get(EXCLUSION, 0),
        "rejected_homopolymer": result.rejections.get(HOMOPOLYMER, 0),
        "rejected_sixmer": result.rejections.get(SIXMER, 0),
        "rejected_codon_run": result.rejections.get(CODON_RUN, 0),
        "rejected_repeat_encoding": result.rejections.get(REPEAT_ENCODING, 0),

        "score_table_path": job["score_table"],
    }

    if result.success:
        dna = result.dna_sequence
        row.update({
            "length": len(dna),
            "score": result.score,
            "gc_content": calculate_gc(dna),
            "max_homopolymer": max_homopolymer_length(dna),
            "codon_entropy": codon_entropy(dna, protein),
            "exclusion_hits": count_hits(dna, constraints.exclusions),
            "repeated_sixmers": len(repeated_windows(dna)),
        })
    return row


# ---------------------------
# Main
# ---------------------------

def main(argv: Optional[List[str]] = None):
    args = get_cli_args(argv)
    logger = setup_logger(getattr(args, "log_file", None), getattr(args, "verbose", False))
    logger.info("Starting codonbeam")

    os.makedirs(args.out, exist_ok=True)

    # Determine jobs source
    if getattr(args, "batch_table", None):
        job_rows = list(iter_batch_table(args.batch_table))
    else:
        job_rows = [{"sequence": args.sequence, "score_table": args.score_table}]

    fasta_out = os.path.join(args.out, "optimized_sequences.fasta")
    tsv_out = os.path.join(args.out, "metrics.tsv")

    all_records: List[Tuple[str, str]] = []
    metrics_rows: List[Dict[str, Any]] = []
    score_tables: Dict[Tuple[str, Optional[str]], Any] = {}

    input_record_count = 0

    for job_idx, row in enumerate(tqdm(job_rows, desc="Processing jobs"), start=1):
        job = merge_defaults(args, row, logger)

        records = load_protein_records(job["sequence"], job["genetic_code"])
        if not records:
            logger.warning(f"No FASTA records in {job['sequence']}")
            continue

        input_record_count += len(records)
        if input_record_count > MAX_INPUT_RECORDS:
            raise CodonbeamError(f"Maximum of {MAX_INPUT_RECORDS} input sequences exceeded")

        table_key = (job["score_table"], job["score_table_sheet"])
        if table_key not in score_tables:
            score_tables[table_key] = load_score_table(job["score_table"], sheet_name=job["score_table_sheet"])
            logger.info(f"Loaded score table {job['score_table']} ({len(score_tables[table_key])} contexts)")

        optimizer = build_job_optimizer(job, score_tables[table_key], logger)
        logger.debug(repr(optimizer))

        proteins = []
        for rec_id, protein in records:
            # the search picks the stop codon like any other residue
            if job["include_stop_codon"] and not protein.endswith("*"):
                protein = protein + "*"
            optimizer.codon_table.validate(protein)
            proteins.append(protein)

        results = run_records(optimizer, proteins, workers=args.workers)

        for (rec_id, _), protein, result in zip(records, proteins, results):
            row_out = metrics_row(job, job_idx, rec_id, protein, result, optimizer)

            if result.success:
                # AA identity check on the DNA actually emitted
                ok, reason, _aa = verify_backtranslation_matches_protein(
                    result.dna_sequence, protein, codon_table=optimizer.codon_table
                )
                if not ok:
                    logger.error(f"[{row_out['sequence_id']}] AA check failed at emit-time: {reason}")
                    row_out.update({"success": 0, "failure_reason": f"AA identity check failed: {reason}"})
                else:
                    all_records.append((row_out["sequence_id"], result.dna_sequence))
                    logger.info(
                        f"[{rec_id}] {len(protein)} AA -> {len(result.dna_sequence)} nt, "
                        f"score={result.score:.4f}, {result.elapsed_ms:.1f} ms"
                    )
            else:
                logger.error(f"Failure for {row_out['sequence_id']}: {result.error}")

            metrics_rows.append(row_out)

    write_outputs(all_records, metrics_rows, fasta_out, tsv_out)
    logger.info(f"Wrote {len(all_records)} sequences to {fasta_out}")
    logger.info(f"Wrote metrics to {tsv_out}")
    logger.info("codonbeam finished successfully")


if __name__ == "__main__":
    main()
