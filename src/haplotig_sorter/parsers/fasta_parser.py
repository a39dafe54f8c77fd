"""
FASTA handling for HaplotigSorter.
Reads contig lengths and GC content, and writes the per-pair FASTA files
handed to the whole-sequence aligner.
"""

import logging
import multiprocessing
from pathlib import Path
from typing import Dict, Iterable, Tuple

from Bio import SeqIO
from Bio.SeqUtils import gc_fraction

from haplotig_sorter.core.errors import InputFormatError
from haplotig_sorter.core.models import ResolvedPair

logger = logging.getLogger(__name__)


def summarise_record(record) -> Tuple[str, float, int]:
    """
    :param record: A Biopython SeqRecord.
    :return: (id, GC percentage, length).
    """
    return str(record.id), float(gc_fraction(record.seq) * 100), len(record.seq)


def parse_fasta(fasta_path: str, threads: int = 1) -> Dict[str, Tuple[float, int]]:
    """
    Parse a FASTA file and return GC content and length per sequence.

    :param fasta_path: Path to the FASTA file.
    :param threads: Worker processes for the GC calculation.
    :return: Mapping id -> (gc_content, length), in file order.
    :raises InputFormatError: if the file holds no records or repeats an identifier.
    """
    try:
        records = list(SeqIO.parse(str(fasta_path), "fasta"))
    except (OSError, ValueError) as e:
        raise InputFormatError(f"Failed to read FASTA {fasta_path}: {e}") from e

    if not records:
        raise InputFormatError(f"No sequences found in {fasta_path}")

    empty = [r.id for r in records if len(r.seq) == 0]
    if empty:
        logger.warning(f"Skipping {len(empty)} empty sequences in {fasta_path}")
        records = [r for r in records if len(r.seq) > 0]
        if not records:
            raise InputFormatError(f"All sequences in {fasta_path} are empty")

    if threads > 1:
        with multiprocessing.Pool(processes=threads) as pool:
            results = pool.map(summarise_record, records)
    else:
        results = [summarise_record(r) for r in records]

    summary = {}
    for seq_id, gc, length in results:
        if seq_id in summary:
            raise InputFormatError(f"Duplicate sequence identifier '{seq_id}' in {fasta_path}")
        summary[seq_id] = (gc, length)

    logger.debug(f"Read {len(summary)} sequences from {fasta_path}")
    return summary


def write_pair_fastas(
    fasta_path: str,
    pairs: Iterable[ResolvedPair],
    out_dir: Path
) -> Dict[Tuple[str, str], Tuple[Path, Path]]:
    """
    Write one FASTA per contig taking part in a pair.
    Files are numbered in order of first use; contig identifiers need not be valid file names.

    :param fasta_path: Contig FASTA.
    :param pairs: Resolved pairs.
    :param out_dir: Directory that receives contig_<n>.fasta files.
    :return: (primary_id, haplotig_id) -> (primary FASTA, haplotig FASTA); pairs with a missing contig are left out.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    index = SeqIO.index(str(fasta_path), "fasta")
    written: Dict[str, Path] = {}
    pair_fastas = {}

    try:
        for pair in pairs:
            paths = []
            for contig in (pair.primary_id, pair.haplotig_id):
                if contig not in written:
                    if contig not in index:
                        logger.warning(f"Contig {contig} of pair {pair.label} not found in {fasta_path}")
                        break
                    path = out_dir / f"contig_{len(written):05d}.fasta"
                    SeqIO.write([index[contig]], str(path), "fasta")
                    written[contig] = path
                paths.append(written[contig])
            if len(paths) == 2:
                pair_fastas[pair.key] = (paths[0], paths[1])
    finally:
        index.close()

    return pair_fastas
