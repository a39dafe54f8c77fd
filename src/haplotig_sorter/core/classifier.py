"""
Coverage-based confirmation of resolved pairs.
"""

import logging
from typing import Iterable, List, Mapping, Tuple

from haplotig_sorter.core.models import (
    CoverageCall,
    CoverageRecord,
    FinalPartition,
    PairOutcome,
    ResolvedPair,
)

logger = logging.getLogger(__name__)


def call_pair(pair: ResolvedPair, record: CoverageRecord, min_coverage: float) -> CoverageCall:
    """
    Confirm a pair when coverage >= min_coverage, reject it below.
    A missing record or a failed alignment leaves the pair unconfirmed.
    """
    if record is None or record.coverage is None:
        reason = record.error if record is not None else "no coverage record"
        logger.warning(f"Pair {pair.label} unconfirmed: {reason}")
        return CoverageCall(pair.primary_id, pair.haplotig_id, None, PairOutcome.UNCONFIRMED)

    if record.coverage >= min_coverage:
        outcome = PairOutcome.CONFIRMED
    else:
        outcome = PairOutcome.REJECTED
    logger.debug(f"Pair {pair.label}: coverage {record.coverage:.2f}% -> {outcome.value}")
    return CoverageCall(pair.primary_id, pair.haplotig_id, record.coverage, outcome)


def classify_pairs(
    pairs: Iterable[ResolvedPair],
    coverage_records: Mapping[Tuple[str, str], CoverageRecord],
    min_coverage: float,
    retained_contigs: Iterable[str]
) -> FinalPartition:
    """
    Build the final partition from resolved pairs and their coverage records.

    Confirmed haplotigs are folded under their primary. Haplotigs of rejected or
    unconfirmed pairs revert to independent primaries, as do all unpaired contigs.

    :param pairs: Resolved pairs.
    :param coverage_records: (primary_id, haplotig_id) -> CoverageRecord.
    :param min_coverage: Minimum coverage percentage (inclusive) to confirm a pair.
    :param retained_contigs: Every contig that survived gene filtering.
    :return: FinalPartition whose primary and haplotig sets partition retained_contigs.
    """
    calls: List[CoverageCall] = []
    haplotig_to_primary = {}

    for pair in sorted(pairs):
        call = call_pair(pair, coverage_records.get(pair.key), min_coverage)
        calls.append(call)
        if call.accepted:
            haplotig_to_primary[pair.haplotig_id] = pair.primary_id

    retained = sorted(set(retained_contigs))
    primary = tuple(c for c in retained if c not in haplotig_to_primary)
    haplotigs = tuple(c for c in retained if c in haplotig_to_primary)

    counts = {outcome: sum(1 for c in calls if c.outcome == outcome) for outcome in PairOutcome}
    logger.info(
        f"Pairs confirmed: {counts[PairOutcome.CONFIRMED]}, rejected: {counts[PairOutcome.REJECTED]}, "
        f"unconfirmed: {counts[PairOutcome.UNCONFIRMED]}"
    )
    logger.info(f"Final partition: {len(primary)} primary contigs, {len(haplotigs)} haplotigs")

    return FinalPartition(
        primary=primary,
        haplotigs=haplotigs,
        haplotig_to_primary=haplotig_to_primary,
        calls=tuple(calls)
    )
