"""
Report generation module for HaplotigSorter.
Writes the alignment, pair and coverage tables, the per-contig summary,
the primary and haplotig FASTA files, and the HTML run report.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Set

import pandas as pd
from Bio import SeqIO
from jinja2 import Environment, FileSystemLoader

from haplotig_sorter.core.models import (
    ContigSummary,
    FILTERED_COLUMNS,
    FinalPartition,
    PairOutcome,
    ResolvedPair,
)
from haplotig_sorter.utils.stats import calculate_assembly_stats

logger = logging.getLogger(__name__)

COVERAGE_COLUMNS = ['primary_id', 'haplotig_id', 'coverage', 'accepted', 'outcome']


def write_filtered_table(filtered: pd.DataFrame, path: Path):
    filtered[FILTERED_COLUMNS].to_csv(path, sep='\t', index=False, encoding='utf-8')


def write_pair_table(pairs: Iterable[ResolvedPair], path: Path):
    rows = [(p.primary_id, p.haplotig_id) for p in sorted(pairs)]
    pd.DataFrame(rows, columns=['primary_id', 'haplotig_id']).to_csv(path, sep='\t', index=False, encoding='utf-8')


def write_coverage_summary(partition: FinalPartition, path: Path):
    rows = [
        (c.primary_id, c.haplotig_id, '' if c.coverage is None else f"{c.coverage:.2f}", c.accepted, c.outcome.value)
        for c in partition.calls
    ]
    pd.DataFrame(rows, columns=COVERAGE_COLUMNS).to_csv(path, sep='\t', index=False, encoding='utf-8')


def process_contig_metrics(c: ContigSummary) -> Dict[str, Any]:
    """
    Flatten a ContigSummary into one row of summary_report.tsv.
    """
    return {
        'contig_id': c.contig_id,
        'length': c.length,
        'gc_content': round(c.gc_content, 2),
        'gene_count': len(c.genes),
        'assessed': c.assessed,
        'role': c.role.value,
        'primary_id': c.primary_id or '',
        'coverage': '' if c.coverage is None else round(c.coverage, 2),
        'outcome': c.outcome.value if c.outcome else ''
    }


def write_partition_fastas(
    input_fasta: Path,
    output_dir: Path,
    primary_ids: Set[str],
    haplotig_ids: Set[str]
) -> Dict[str, int]:
    """
    Split the input assembly into primary.fasta and haplotigs.fasta, keeping input order.

    :return: Number of records written per file.
    """
    primary_records = []
    haplotig_records = []
    for record in SeqIO.parse(str(input_fasta), "fasta"):
        if record.id in haplotig_ids:
            haplotig_records.append(record)
        elif record.id in primary_ids:
            primary_records.append(record)

    with open(output_dir / 'primary.fasta', 'w', encoding='utf-8') as f:
        SeqIO.write(primary_records, f, "fasta")
    with open(output_dir / 'haplotigs.fasta', 'w', encoding='utf-8') as f:
        SeqIO.write(haplotig_records, f, "fasta")

    return {'primary': len(primary_records), 'haplotigs': len(haplotig_records)}


def generate_report(
    summary_list: List[ContigSummary],
    partition: FinalPartition,
    output_dir: Path,
    run_parameters: Dict[str, Any] = None,
    diagnostics: Dict[str, Any] = None
):
    """
    Write summary_report.tsv and render report.html.

    :param summary_list: One ContigSummary per input contig.
    :param partition: Final partition.
    :param output_dir: Directory to save outputs.
    :param run_parameters: Parameters used for the run, shown in the report.
    :param diagnostics: Counters collected during the run (skipped records, failures).
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    df_summary = pd.DataFrame(
        [process_contig_metrics(c) for c in summary_list],
        columns=['contig_id', 'length', 'gc_content', 'gene_count', 'assessed',
                 'role', 'primary_id', 'coverage', 'outcome']
    )
    df_summary.to_csv(output_dir / 'summary_report.tsv', sep='\t', index=False, encoding='utf-8')

    lengths = {c.contig_id: c.length for c in summary_list}
    primary_set = set(partition.primary)
    stats_initial = calculate_assembly_stats(lengths.values())
    stats_primary = calculate_assembly_stats(lengths[c] for c in partition.primary if c in lengths)
    stats_haplotigs = calculate_assembly_stats(lengths[c] for c in partition.haplotigs if c in lengths)

    role_counts = {
        'Assessed': sum(1 for c in summary_list if c.assessed),
        'Unassessed': sum(1 for c in summary_list if not c.assessed),
        'Primary': len(primary_set),
        'Haplotig': len(partition.haplotigs),
        'Primaries with haplotigs': len(set(partition.haplotig_to_primary.values())),
    }
    outcome_counts = {o.value: sum(1 for c in partition.calls if c.outcome == o) for o in PairOutcome}

    template_dir = Path(__file__).parent / 'templates'
    env = Environment(loader=FileSystemLoader(str(template_dir)), autoescape=True)
    template = env.get_template('report.html')

    html_content = template.render(
        stats_initial=stats_initial,
        stats_primary=stats_primary,
        stats_haplotigs=stats_haplotigs,
        role_counts=role_counts,
        outcome_counts=outcome_counts,
        calls=partition.calls,
        run_parameters=run_parameters if run_parameters else {},
        diagnostics=diagnostics if diagnostics else {}
    )

    with open(output_dir / 'report.html', 'w', encoding='utf-8') as f:
        f.write(html_content)
    logger.debug(f"Report written to {output_dir / 'report.html'}")
