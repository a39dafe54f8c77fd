"""
Main entry point for the HaplotigSorter command-line tool.
This module orchestrates the pipeline, from gene alignment evidence to the
final primary/haplotig partition and its reports.
"""

import argparse
import logging
import multiprocessing
import sys
from pathlib import Path

from haplotig_sorter.aligners.local import BlastnAligner
from haplotig_sorter.aligners.whole_genome import NucmerAligner
from haplotig_sorter.core.classifier import classify_pairs
from haplotig_sorter.core.errors import ConfigurationError, HaplotigSorterError
from haplotig_sorter.core.evaluation import evaluate_pairs
from haplotig_sorter.core.gene_filter import filter_alignments
from haplotig_sorter.core.models import ContigSummary, PipelineParameters, Role
from haplotig_sorter.core.pairing import build_candidate_edges
from haplotig_sorter.core.resolver import resolve_pairs
from haplotig_sorter.parsers.blast_parser import parse_blast_table
from haplotig_sorter.parsers.coverage_parser import parse_coverage_table, records_for_pairs
from haplotig_sorter.parsers.fasta_parser import parse_fasta, write_pair_fastas
from haplotig_sorter.reporting.report_generator import (
    generate_report,
    write_coverage_summary,
    write_filtered_table,
    write_pair_table,
    write_partition_fastas,
)
from haplotig_sorter.utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="HaplotigSorter: Gene-based separation of primary contigs and haplotigs.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Mandatory
    parser.add_argument("-c", "--contigs", required=True, help="Assembly contigs FASTA file")
    evidence = parser.add_mutually_exclusive_group(required=True)
    evidence.add_argument("-g", "--genes", help="Gene sequences FASTA; aligned to the contigs with blastn")
    evidence.add_argument("--hits", help="Existing hit table (qseqid sseqid pident length qlen bitscore)")

    # Optional
    parser.add_argument("--coverage-table", help="Precomputed TSV (primary_id, haplotig_id, coverage); skips nucmer")
    parser.add_argument("-o", "--output", default="./output", help="Output directory for results")
    parser.add_argument("--keep-unassessed", action="store_true",
                        help="Write contigs without enough gene evidence to primary.fasta instead of dropping them")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show DEBUG messages on the console")

    # Configurable
    parser.add_argument("--min-identity", type=int, default=90, help="Minimum gene alignment identity (1-100)")
    parser.add_argument("--min-gene", type=int, default=3, help="Minimum number of aligned genes per contig")
    parser.add_argument("--min-align-length", type=float, default=0.7,
                        help="Minimum aligned fraction of a gene's length (0-1)")
    parser.add_argument("--min-gene-cover", type=float, default=0.8,
                        help="Minimum fraction of a contig's genes shared with its partner (0-1)")
    parser.add_argument("--min-coverage", type=int, default=80,
                        help="Minimum percentage of the haplotig covered by the primary (1-100)")
    parser.add_argument("--threads", type=int, default=max(1, multiprocessing.cpu_count() - 1),
                        help="Number of CPU cores for parallel processing")

    # External tools
    parser.add_argument("--blast-evalue", type=float, default=1e-10, help="E-value cutoff passed to blastn")
    parser.add_argument("--nucmer-min-cluster", type=int, default=None,
                        help="Minimum cluster length passed to nucmer -c (nucmer default when unset)")
    parser.add_argument("--tool-timeout", type=int, default=None,
                        help="Seconds before an external tool run is abandoned (no limit when unset)")
    return parser


def validate_tool_options(args) -> None:
    """
    :raises ConfigurationError: if an external tool option is out of range.
    """
    if args.blast_evalue <= 0:
        raise ConfigurationError(f"blast_evalue must be > 0, got {args.blast_evalue}")
    if args.nucmer_min_cluster is not None and args.nucmer_min_cluster < 1:
        raise ConfigurationError(f"nucmer_min_cluster must be >= 1, got {args.nucmer_min_cluster}")
    if args.tool_timeout is not None and args.tool_timeout < 1:
        raise ConfigurationError(f"tool_timeout must be >= 1, got {args.tool_timeout}")


def main(argv=None):
    args = build_parser().parse_args(argv)

    params = PipelineParameters(
        min_identity=args.min_identity,
        min_gene=args.min_gene,
        min_align_length=args.min_align_length,
        min_gene_cover=args.min_gene_cover,
        min_coverage=args.min_coverage,
        threads=args.threads
    )
    try:
        params.validate()
        validate_tool_options(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    output_dir = Path(args.output)
    work_dir = output_dir / "work"
    log_queue, log_listener = setup_logging(output_dir, args.verbose)

    logger = logging.getLogger(__name__)
    try:
        logger.info("Starting HaplotigSorter pipeline...")
        diagnostics = {}

        # Phase 1: Contigs
        logger.info("Phase 1: Reading contigs...")
        fasta_data = parse_fasta(args.contigs, params.threads)
        summary_list = []
        contig_to_summary = {}
        for contig_id, (gc, length) in fasta_data.items():
            cs = ContigSummary(contig_id=contig_id, length=length, gc_content=gc)
            summary_list.append(cs)
            contig_to_summary[contig_id] = cs
        contig_lengths = {c: length for c, (_, length) in fasta_data.items()}

        # Phase 2: Gene alignment evidence
        if args.hits:
            logger.info("Phase 2: Reading gene hit table...")
            hits_path = Path(args.hits)
        else:
            logger.info("Phase 2: Aligning genes to contigs...")
            blast = BlastnAligner(threads=params.threads, evalue=args.blast_evalue, timeout=args.tool_timeout)
            hits_path = blast.run(Path(args.genes), Path(args.contigs), work_dir / "blast", params.min_identity)
        hits_df = parse_blast_table(str(hits_path))
        diagnostics['Skipped hit records'] = hits_df.attrs.get('skipped_records', 0)

        unknown = set(hits_df['contig_id']) - set(contig_lengths)
        if unknown:
            logger.warning(f"{len(unknown)} contigs in the hit table are absent from {args.contigs}; ignoring their hits")
            hits_df = hits_df[hits_df['contig_id'].isin(set(contig_lengths))]
            diagnostics['Hits on unknown contigs'] = len(unknown)

        # Phase 3: Gene filtering
        logger.info("Phase 3: Filtering gene alignments...")
        filtered_df, contig_genes = filter_alignments(
            hits_df, params.min_identity, params.min_align_length, params.min_gene
        )
        for contig_id, genes in contig_genes.items():
            cs = contig_to_summary[contig_id]
            cs.genes = set(genes)
            cs.assessed = True

        # Phase 4: Candidate pairs
        logger.info("Phase 4: Building candidate pairs from shared genes...")
        graph = build_candidate_edges(contig_genes, params.min_gene_cover)

        # Phase 5: Pair resolution
        logger.info("Phase 5: Resolving primary/haplotig roles...")
        resolution = resolve_pairs(graph, contig_genes, contig_lengths)
        for contig_id, decision in resolution.decisions.items():
            cs = contig_to_summary[contig_id]
            cs.role = decision.role
            cs.primary_id = decision.primary_id

        # Phase 6: Whole-sequence coverage
        if args.coverage_table:
            logger.info("Phase 6: Reading precomputed coverage...")
            coverage_records = records_for_pairs(parse_coverage_table(args.coverage_table), resolution.pairs)
        elif resolution.pairs:
            logger.info(f"Phase 6: Aligning {len(resolution.pairs)} pairs with nucmer...")
            pair_fastas = write_pair_fastas(args.contigs, resolution.pairs, work_dir / "sequences")
            aligner = NucmerAligner(min_cluster=args.nucmer_min_cluster, timeout=args.tool_timeout)
            coverage_records = evaluate_pairs(
                resolution.pairs, aligner, pair_fastas, work_dir / "nucmer",
                params.threads, log_queue
            )
        else:
            logger.info("Phase 6: No pairs to align.")
            coverage_records = {}
        diagnostics['Pair alignment failures'] = sum(
            1 for r in coverage_records.values() if r.coverage is None
        )

        # Phase 7: Classification
        logger.info("Phase 7: Classifying pairs by coverage...")
        partition = classify_pairs(resolution.pairs, coverage_records, params.min_coverage, contig_genes.keys())
        for call in partition.calls:
            cs = contig_to_summary[call.haplotig_id]
            cs.coverage = call.coverage
            cs.outcome = call.outcome
        for contig_id in partition.primary:
            contig_to_summary[contig_id].role = Role.PRIMARY
            contig_to_summary[contig_id].primary_id = None
        for contig_id in partition.haplotigs:
            contig_to_summary[contig_id].role = Role.HAPLOTIG
            contig_to_summary[contig_id].primary_id = partition.haplotig_to_primary[contig_id]

        # Phase 8: Reporting
        logger.info("Phase 8: Writing outputs...")
        write_filtered_table(filtered_df, output_dir / 'filtered_alignments.tsv')
        write_pair_table(resolution.pairs, output_dir / 'pairs.tsv')
        write_coverage_summary(partition, output_dir / 'coverage_summary.tsv')

        primary_ids = set(partition.primary)
        unassessed = {c.contig_id for c in summary_list if not c.assessed}
        if args.keep_unassessed:
            primary_ids |= unassessed
        elif unassessed:
            logger.info(f"Leaving {len(unassessed)} unassessed contigs out of primary.fasta")
        written = write_partition_fastas(Path(args.contigs), output_dir, primary_ids, set(partition.haplotigs))

        run_parameters = {
            'min_identity': params.min_identity,
            'min_gene': params.min_gene,
            'min_align_length': params.min_align_length,
            'min_gene_cover': params.min_gene_cover,
            'min_coverage': params.min_coverage,
            'keep_unassessed': args.keep_unassessed,
            'blast_evalue': args.blast_evalue,
            'nucmer_min_cluster': args.nucmer_min_cluster,
            'tool_timeout': args.tool_timeout
        }
        generate_report(summary_list, partition, output_dir, run_parameters, diagnostics)

        logger.info(f"Wrote {written['primary']} primary contigs and {written['haplotigs']} haplotigs")
        logger.info(f"Pipeline complete. Results saved in {output_dir}")
    except HaplotigSorterError as e:
        logger.error(f"Critical failure: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Critical failure: {e}")
        sys.exit(1)
    finally:
        log_listener.stop()


if __name__ == "__main__":
    main()
