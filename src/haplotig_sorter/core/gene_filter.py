"""
Gene alignment filtering for HaplotigSorter.
Reduces raw gene-vs-contig hits to one best hit per gene and contig,
and builds the per-contig gene sets used for candidate pairing.
"""

import logging
import warnings
from typing import Tuple

import pandas as pd

from haplotig_sorter.core.errors import EmptyResultWarning
from haplotig_sorter.core.models import ContigGeneSet, FILTERED_COLUMNS

logger = logging.getLogger(__name__)


def filter_alignments(
    hits: pd.DataFrame,
    min_identity: float,
    min_align_length: float,
    min_gene: int
) -> Tuple[pd.DataFrame, ContigGeneSet]:
    """
    Filter gene alignments and build the gene set of every contig.

    Steps:
    1. Drop hits below min_identity (already applied by the aligner, re-checked here).
    2. Drop hits whose aligned fraction of the gene is below min_align_length.
    3. Keep the best hit per (gene, contig): bitscore, then alignment length, then identity.
    4. Group genes by contig and drop contigs with fewer than min_gene genes.

    :param hits: DataFrame with columns gene_id, contig_id, identity, aln_len, gene_len, bitscore.
    :param min_identity: Minimum percent identity (0-100).
    :param min_align_length: Minimum aln_len / gene_len fraction (0-1).
    :param min_gene: Minimum number of distinct genes for a contig to be retained (inclusive).
    :return: Tuple (filtered table restricted to retained contigs, contig -> frozenset of gene ids).
    """
    if hits.empty:
        warnings.warn("No alignment hits to filter; no contig can be assessed.", EmptyResultWarning)
        return pd.DataFrame(columns=FILTERED_COLUMNS), {}

    initial_count = len(hits)
    df = hits[hits['identity'] >= min_identity]

    fraction = df['aln_len'] / df['gene_len'].where(df['gene_len'] > 0)
    df = df[fraction >= min_align_length]
    logger.debug(f"{len(df)} of {initial_count} hits pass identity and length-fraction filters")

    df = df.sort_values(
        by=['gene_id', 'contig_id', 'bitscore', 'aln_len', 'identity'],
        ascending=[True, True, False, False, False],
        kind='mergesort'
    )
    df = df.drop_duplicates(subset=['gene_id', 'contig_id'], keep='first')

    gene_sets = df.groupby('contig_id')['gene_id'].apply(frozenset).to_dict()
    contig_genes = {
        contig: genes for contig, genes in gene_sets.items()
        if len(genes) >= min_gene
    }

    dropped = len(gene_sets) - len(contig_genes)
    if dropped:
        logger.info(f"Dropped {dropped} contigs with fewer than {min_gene} qualifying genes")

    if not contig_genes:
        warnings.warn(
            f"No contig has at least {min_gene} qualifying genes; the partition will be empty.",
            EmptyResultWarning
        )

    filtered = df[df['contig_id'].isin(set(contig_genes))]
    filtered = filtered.sort_values(by=['contig_id', 'gene_id'], kind='mergesort')
    filtered = filtered[FILTERED_COLUMNS].reset_index(drop=True)

    logger.info(f"Retained {len(contig_genes)} contigs carrying {filtered['gene_id'].nunique()} distinct genes")
    return filtered, contig_genes
