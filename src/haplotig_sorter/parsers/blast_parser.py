"""
Tabular local-alignment parser for HaplotigSorter.
Reads BLAST-style tables with the columns
qseqid sseqid pident length qlen bitscore (extra columns ignored).
"""

import csv
import logging

import pandas as pd

from haplotig_sorter.core.errors import InputFormatError
from haplotig_sorter.core.models import HIT_COLUMNS

logger = logging.getLogger(__name__)

HEADER_TOKENS = {'qseqid', 'gene_id', 'query_id'}
NUMERIC_COLUMNS = ['identity', 'aln_len', 'gene_len', 'bitscore']


def parse_blast_table(table_path: str) -> pd.DataFrame:
    """
    Parse a gene-vs-contig hit table.

    Comment lines (outfmt 7), blank lines and a leading header line are skipped.
    Rows with missing fields, non-numeric values, lengths below 1 or identity
    outside 0-100 are dropped, logged with their line number at DEBUG level and
    counted in df.attrs['skipped_records'].

    :param table_path: Path to the tab-separated hit table.
    :return: DataFrame with columns gene_id, contig_id, identity, aln_len, gene_len, bitscore.
    :raises InputFormatError: if the file cannot be read, or has rows but none are valid.
    """
    try:
        raw = pd.read_csv(
            table_path, sep='\t', header=None, names=HIT_COLUMNS,
            usecols=range(len(HIT_COLUMNS)), index_col=False, dtype=str,
            quoting=csv.QUOTE_NONE, skip_blank_lines=False, encoding='utf-8'
        )
    except pd.errors.EmptyDataError:
        raw = pd.DataFrame(columns=HIT_COLUMNS, dtype=str)
    except Exception as e:
        logger.error(f"Failed to read hit table {table_path}: {e}")
        raise InputFormatError(f"Failed to read hit table {table_path}: {e}") from e

    # Index is the 1-based line number in the file
    raw.index = raw.index + 1
    first_field = raw['gene_id'].fillna('')
    blank = first_field.str.strip().eq('') & raw[HIT_COLUMNS[1:]].isna().all(axis=1)
    df = raw[~(blank | first_field.str.startswith('#'))].copy()

    if not df.empty and df.iloc[0, 0] in HEADER_TOKENS:
        df = df.iloc[1:].copy()

    for column in NUMERIC_COLUMNS:
        df[column] = pd.to_numeric(df[column], errors='coerce')

    valid = (
        df[NUMERIC_COLUMNS].notna().all(axis=1)
        & df['gene_id'].notna() & df['contig_id'].notna()
        & (df['gene_id'].str.len() > 0)
        & (df['contig_id'].str.len() > 0)
        & df['identity'].between(0, 100)
        & (df['aln_len'] >= 1)
        & (df['gene_len'] >= 1)
    )
    skipped = int((~valid).sum())
    total = len(df)

    for line_no in df.index[~valid]:
        logger.debug(f"Skipping malformed record at line {line_no} of {table_path}")

    if total > 0 and not valid.any():
        raise InputFormatError(f"None of the {total} records in {table_path} are valid")
    if skipped:
        logger.warning(f"Skipped {skipped} malformed records in {table_path}")
    if total == 0:
        logger.warning(f"Hit table {table_path} is empty.")

    df = df[valid].copy()
    df['aln_len'] = df['aln_len'].astype(int)
    df['gene_len'] = df['gene_len'].astype(int)
    df = df.reset_index(drop=True)
    df.attrs['skipped_records'] = skipped

    logger.debug(f"Parsed {len(df)} hits from {table_path}")
    return df
