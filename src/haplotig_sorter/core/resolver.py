"""
Pair resolution for HaplotigSorter.
Turns the directed candidate graph into primary -> haplotig pairs in which
every haplotig has exactly one primary and no primary is itself a haplotig.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Mapping, Tuple

from haplotig_sorter.core.models import (
    ContigDecision,
    ContigGeneSet,
    Resolution,
    ResolvedPair,
    Role,
)
from haplotig_sorter.core.pairing import CandidateGraph

logger = logging.getLogger(__name__)


def contig_rank(contig: str, contig_genes: ContigGeneSet, contig_lengths: Mapping[str, int]) -> Tuple[int, int, str]:
    """
    Sort key that puts the stronger primary first:
    larger gene set, then longer sequence, then lexicographically smaller id.
    """
    return -len(contig_genes.get(contig, ())), -contig_lengths.get(contig, 0), contig


def collect_claims(
    graph: CandidateGraph,
    contig_genes: ContigGeneSet,
    contig_lengths: Mapping[str, int]
) -> Dict[str, List[ResolvedPair]]:
    """
    Convert candidate edges into primary/haplotig claims, grouped by haplotig.

    A mutual pair (A -> B and B -> A) yields one claim whose primary is the
    higher-ranked contig; its strength is the larger of the two fractions.
    A one-way edge A -> B claims B as haplotig of A.
    """
    fractions = {
        (edge.source, edge.target): edge.share_fraction
        for edges in graph.values() for edge in edges
    }

    claims = defaultdict(list)
    for (source, target), fraction in sorted(fractions.items()):
        reverse = fractions.get((target, source))
        if reverse is None:
            claims[target].append(ResolvedPair(source, target, fraction))
            continue
        if source > target:
            continue
        primary, haplotig = sorted(
            (source, target), key=lambda c: contig_rank(c, contig_genes, contig_lengths)
        )
        claims[haplotig].append(ResolvedPair(primary, haplotig, max(fraction, reverse)))

    # Preferred primary first: highest share fraction, larger primary gene set, smaller id
    for options in claims.values():
        options.sort(key=lambda p: (-p.share_fraction, -len(contig_genes.get(p.primary_id, ())), p.primary_id))
    return claims


def resolve_pairs(
    graph: CandidateGraph,
    contig_genes: ContigGeneSet,
    contig_lengths: Mapping[str, int]
) -> Resolution:
    """
    Resolve the candidate graph into a consistent role for every contig.

    Each haplotig first takes its preferred claim. While some contig is both a
    haplotig and the primary of another contig, the highest-ranked such contig
    is settled: if it outranks its own primary it keeps the primary role and
    drops that claim, otherwise it stays a haplotig and its dependants fall back
    to their next claim. Every step discards at least one claim, so the loop ends.

    :param graph: Candidate adjacency mapping.
    :param contig_genes: Retained contig -> gene set mapping.
    :param contig_lengths: Contig -> sequence length, used for tie-breaking.
    :return: Resolution with sorted pairs, unpaired contigs and per-contig decisions.
    """
    def rank(contig: str) -> Tuple[int, int, str]:
        return contig_rank(contig, contig_genes, contig_lengths)

    options = collect_claims(graph, contig_genes, contig_lengths)
    assignment: Dict[str, ResolvedPair] = {h: claims[0] for h, claims in options.items()}

    def fall_back(haplotig: str) -> None:
        options[haplotig].pop(0)
        if options[haplotig]:
            assignment[haplotig] = options[haplotig][0]
        else:
            del assignment[haplotig]

    rounds = 0
    while True:
        primaries = {pair.primary_id for pair in assignment.values()}
        contested = sorted((c for c in assignment if c in primaries), key=rank)
        if not contested:
            break
        rounds += 1

        contig = contested[0]
        primary = assignment[contig].primary_id
        if rank(contig) < rank(primary):
            logger.debug(f"{contig} outranks {primary}; keeping {contig} as primary")
            fall_back(contig)
        else:
            dependants = sorted(h for h, pair in assignment.items() if pair.primary_id == contig)
            logger.debug(f"{contig} stays haplotig of {primary}; releasing {len(dependants)} dependants")
            for haplotig in dependants:
                fall_back(haplotig)

    if rounds:
        logger.debug(f"Role conflicts settled in {rounds} rounds")

    primaries = {pair.primary_id for pair in assignment.values()}
    decisions = {}
    for contig in sorted(contig_genes):
        if contig in assignment:
            decisions[contig] = ContigDecision(contig, Role.HAPLOTIG, assignment[contig].primary_id)
        elif contig in primaries:
            decisions[contig] = ContigDecision(contig, Role.PRIMARY)
        else:
            decisions[contig] = ContigDecision(contig)

    pairs = sorted(assignment.values())
    unpaired = [c for c, d in decisions.items() if d.role == Role.UNASSIGNED]

    logger.info(f"Resolved {len(pairs)} primary/haplotig pairs over {len(primaries)} primaries; {len(unpaired)} contigs unpaired")
    return Resolution(pairs=pairs, unpaired=unpaired, decisions=decisions)
