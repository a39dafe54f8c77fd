"""
Candidate pair construction for HaplotigSorter.
Computes directed gene-sharing fractions between contigs and keeps the
edges that clear the minimum gene cover.
"""

import logging
import warnings
from collections import defaultdict
from typing import AbstractSet, Dict, List, Set

from haplotig_sorter.core.errors import EmptyResultWarning
from haplotig_sorter.core.models import CandidateEdge, ContigGeneSet

logger = logging.getLogger(__name__)

CandidateGraph = Dict[str, List[CandidateEdge]]


def share_fraction(genes_a: AbstractSet[str], genes_b: AbstractSet[str]) -> float:
    """
    Fraction of A's genes that are also aligned to B.
    Not symmetric: share_fraction(A, B) is relative to A's gene set only.

    :return: Value in [0, 1]; 0.0 when A has no genes.
    """
    if not genes_a:
        return 0.0
    return len(genes_a & genes_b) / len(genes_a)


def build_gene_index(contig_genes: ContigGeneSet) -> Dict[str, Set[str]]:
    """
    Invert contig -> genes into gene -> contigs.
    """
    index = defaultdict(set)
    for contig, genes in contig_genes.items():
        for gene in genes:
            index[gene].add(contig)
    return index


def build_candidate_edges(contig_genes: ContigGeneSet, min_gene_cover: float) -> CandidateGraph:
    """
    Build the directed candidate graph.

    Only contig pairs sharing at least one gene are visited, found through the
    gene -> contigs index; disjoint pairs are never compared.

    :param contig_genes: Retained contig -> gene set mapping.
    :param min_gene_cover: Minimum share fraction (inclusive) for an edge A -> B.
    :return: Adjacency mapping source contig -> outgoing edges sorted by target id.
    """
    gene_index = build_gene_index(contig_genes)
    graph: CandidateGraph = {}
    edge_count = 0

    for source in sorted(contig_genes):
        genes = contig_genes[source]
        if not genes:
            continue

        neighbours = set()
        for gene in genes:
            neighbours |= gene_index[gene]
        neighbours.discard(source)

        outgoing = []
        for target in sorted(neighbours):
            fraction = share_fraction(genes, contig_genes[target])
            if fraction >= min_gene_cover:
                outgoing.append(CandidateEdge(source=source, target=target, share_fraction=fraction))

        if outgoing:
            graph[source] = outgoing
            edge_count += len(outgoing)

    if not graph:
        warnings.warn(
            f"No contig pair shares at least {min_gene_cover:.2f} of genes; no candidate pairs.",
            EmptyResultWarning
        )
    logger.info(f"Candidate edges: {edge_count} from {len(graph)} source contigs")
    return graph
