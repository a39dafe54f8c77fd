"""
Per-pair whole-sequence alignment, fanned out over a process pool.
Each pair is independent; a failure is recorded against that pair only.
"""

import logging
import multiprocessing
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

from haplotig_sorter.core.errors import ExternalToolFailure
from haplotig_sorter.core.models import CoverageRecord, ResolvedPair
from haplotig_sorter.utils.logging import worker_configurer

logger = logging.getLogger(__name__)

PairKey = Tuple[str, str]


def evaluate_pair(
    pair: ResolvedPair,
    aligner,
    primary_fasta: Path,
    haplotig_fasta: Path,
    prefix: Path
) -> CoverageRecord:
    """
    Run the whole-sequence aligner on one pair.

    :param pair: The pair to evaluate.
    :param aligner: Object exposing coverage(primary_fasta, haplotig_fasta, prefix) -> float.
    :param primary_fasta: FASTA holding the primary contig.
    :param haplotig_fasta: FASTA holding the haplotig contig.
    :param prefix: Path prefix for the aligner's output files, unique to this pair.
    :return: CoverageRecord; coverage is None if the aligner failed.
    """
    try:
        coverage = aligner.coverage(primary_fasta, haplotig_fasta, Path(prefix))
    except ExternalToolFailure as e:
        logger.warning(f"Whole-sequence alignment failed for {pair.label}: {e}")
        return CoverageRecord(pair.primary_id, pair.haplotig_id, None, str(e))

    logger.debug(f"{pair.haplotig_id} covered {coverage:.2f}% by {pair.primary_id}")
    return CoverageRecord(pair.primary_id, pair.haplotig_id, coverage)


def evaluate_pairs(
    pairs: List[ResolvedPair],
    aligner,
    pair_fastas: Mapping[PairKey, Tuple[Path, Path]],
    work_dir: Path,
    threads: int = 1,
    log_queue=None
) -> Dict[PairKey, CoverageRecord]:
    """
    Evaluate every pair, in parallel when threads > 1.

    Aligner output for the i-th pair goes under work_dir/pair_<i>, so contig
    identifiers never have to be safe file names.

    :param pairs: Pairs to evaluate.
    :param aligner: Picklable whole-sequence aligner.
    :param pair_fastas: (primary_id, haplotig_id) -> (primary FASTA, haplotig FASTA);
        pairs without an entry are unconfirmed.
    :param work_dir: Directory for aligner output.
    :param threads: Number of worker processes.
    :param log_queue: Logging queue handed to workers.
    :return: (primary_id, haplotig_id) -> CoverageRecord.
    """
    records: Dict[PairKey, CoverageRecord] = {}
    tasks = []
    for i, pair in enumerate(pairs):
        if pair.key not in pair_fastas:
            records[pair.key] = CoverageRecord(
                pair.primary_id, pair.haplotig_id, None, "sequence missing from contig FASTA"
            )
            continue
        primary_fasta, haplotig_fasta = pair_fastas[pair.key]
        tasks.append((pair, aligner, primary_fasta, haplotig_fasta, Path(work_dir) / f"pair_{i:05d}"))

    if threads <= 1 or len(tasks) <= 1:
        results = [evaluate_pair(*task) for task in tasks]
    else:
        pool_kwargs = {}
        if log_queue is not None:
            pool_kwargs = {'initializer': worker_configurer, 'initargs': (log_queue,)}
        with multiprocessing.Pool(min(threads, len(tasks)), **pool_kwargs) as pool:
            results = pool.starmap(evaluate_pair, tasks)

    for record in results:
        records[record.key] = record

    failed = sum(1 for r in records.values() if r.coverage is None)
    if failed:
        logger.warning(f"{failed} of {len(pairs)} pairs could not be aligned")
    return records
