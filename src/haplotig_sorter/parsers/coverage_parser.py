"""
Coverage parsers for HaplotigSorter.
Reads MUMmer show-coords output and precomputed pair coverage tables.
"""

import logging
from typing import Dict, Iterable, List, Tuple

import pandas as pd

from haplotig_sorter.core.errors import InputFormatError
from haplotig_sorter.core.models import CoverageRecord, ResolvedPair

logger = logging.getLogger(__name__)

# show-coords -T -H -l
COORDS_COLUMNS = [
    'ref_start', 'ref_end', 'query_start', 'query_end',
    'ref_aln_len', 'query_aln_len', 'identity',
    'ref_len', 'query_len', 'ref_id', 'query_id'
]


def covered_bases(intervals: Iterable[Tuple[int, int]]) -> int:
    """
    Number of positions covered by at least one 1-based inclusive interval.
    Reversed intervals (reverse-strand hits) are normalised first.
    """
    events = []
    for start, end in intervals:
        low, high = min(start, end), max(start, end)
        events.append((low, 1))
        events.append((high + 1, -1))
    events.sort()

    covered = 0
    depth = 0
    last_pos = None
    for pos, delta in events:
        if depth > 0:
            covered += pos - last_pos
        depth += delta
        last_pos = pos
    return covered


def parse_show_coords(coords_path: str) -> float:
    """
    Percentage of the query sequence covered by alignments to the reference.

    :param coords_path: Output of `show-coords -T -H -l`.
    :return: Coverage percentage in [0, 100]; 0.0 when there are no alignments.
    :raises InputFormatError: if rows are present but cannot be parsed.
    """
    try:
        df = pd.read_csv(coords_path, sep='\t', header=None, names=COORDS_COLUMNS, encoding='utf-8')
    except pd.errors.EmptyDataError:
        return 0.0
    except Exception as e:
        raise InputFormatError(f"Failed to read coords file {coords_path}: {e}") from e

    if df.empty:
        return 0.0

    numeric = df[['query_start', 'query_end', 'query_len']].apply(pd.to_numeric, errors='coerce')
    if numeric.isnull().any().any():
        raise InputFormatError(f"Non-numeric coordinates in {coords_path}")

    query_len = int(numeric['query_len'].max())
    if query_len <= 0:
        return 0.0

    covered = covered_bases(zip(numeric['query_start'].astype(int), numeric['query_end'].astype(int)))
    return min(100.0, covered / query_len * 100)


def parse_coverage_table(table_path: str) -> Dict[Tuple[str, str], CoverageRecord]:
    """
    Parse a precomputed coverage table with columns primary_id, haplotig_id, coverage.

    :param table_path: Tab-separated file with a header line.
    :return: (primary_id, haplotig_id) -> CoverageRecord. Rows with a non-numeric or out-of-range coverage are skipped.
    :raises InputFormatError: if the required columns are missing.
    """
    try:
        df = pd.read_csv(table_path, sep='\t', comment='#', dtype=str, encoding='utf-8')
    except pd.errors.EmptyDataError:
        logger.warning(f"Coverage table {table_path} is empty.")
        return {}
    except Exception as e:
        raise InputFormatError(f"Failed to read coverage table {table_path}: {e}") from e

    required = ['primary_id', 'haplotig_id', 'coverage']
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise InputFormatError(f"Coverage table {table_path} lacks columns: {', '.join(missing)}")

    coverage = pd.to_numeric(df['coverage'], errors='coerce')
    valid = coverage.between(0, 100) & df['primary_id'].notna() & df['haplotig_id'].notna()
    skipped = int((~valid).sum())
    if skipped:
        logger.warning(f"Skipped {skipped} malformed rows in {table_path}")

    records = {}
    for primary_id, haplotig_id, value in zip(df['primary_id'][valid], df['haplotig_id'][valid], coverage[valid]):
        record = CoverageRecord(primary_id, haplotig_id, float(value))
        records[record.key] = record
    return records


def records_for_pairs(
    records: Dict[Tuple[str, str], CoverageRecord],
    pairs: List[ResolvedPair]
) -> Dict[Tuple[str, str], CoverageRecord]:
    """
    Restrict precomputed records to the resolved pairs, logging pairs with no row.
    """
    selected = {}
    for pair in pairs:
        if pair.key in records:
            selected[pair.key] = records[pair.key]
        else:
            logger.debug(f"No precomputed coverage for {pair.label}")
    return selected
