import logging
import pytest
from haplotig_sorter.core.errors import InputFormatError
from haplotig_sorter.core.models import ResolvedPair
from haplotig_sorter.parsers.blast_parser import parse_blast_table
from haplotig_sorter.parsers.coverage_parser import (
    covered_bases,
    parse_coverage_table,
    parse_show_coords,
)
from haplotig_sorter.parsers.fasta_parser import parse_fasta, write_pair_fastas


def write(path, text):
    path.write_text(text, encoding='utf-8')
    return path


def test_parse_blast_table_skips_comments_and_malformed(tmp_path):
    table = write(tmp_path / "hits.tsv", (
        "# BLASTN 2.14.0+\n"
        "# Fields: query id, subject id, % identity, alignment length, query length, bit score\n"
        "g1\tctg1\t99.5\t950\t1000\t1700\n"
        "g2\tctg1\t98.0\t800\t1000\t1400\textra\tcolumns\n"
        "g3\tctg2\tNaN-ish\t800\t1000\t1400\n"
        "g4\tctg2\t97.0\n"
        "g5\tctg2\t97.0\t0\t1000\t10\n"
    ))
    df = parse_blast_table(str(table))

    assert list(df['gene_id']) == ['g1', 'g2']
    assert list(df.columns) == ['gene_id', 'contig_id', 'identity', 'aln_len', 'gene_len', 'bitscore']
    assert df['aln_len'].tolist() == [950, 800]
    assert df.attrs['skipped_records'] == 3


def test_parse_blast_table_logs_line_of_each_skipped_record(tmp_path, caplog):
    table = write(tmp_path / "hits.tsv", (
        "# BLASTN 2.14.0+\n"
        "g1\tctg1\t99.5\t950\t1000\t1700\n"
        "\n"
        "g2\tctg1\tbad\t800\t1000\t1400\n"
        "g3\tctg2\t97.0\n"
    ))
    caplog.set_level(logging.DEBUG, logger='haplotig_sorter.parsers.blast_parser')
    df = parse_blast_table(str(table))

    assert list(df['gene_id']) == ['g1']
    skipped_lines = [r.getMessage() for r in caplog.records if 'Skipping malformed record' in r.getMessage()]
    assert len(skipped_lines) == 2
    assert 'line 4 ' in skipped_lines[0]
    assert 'line 5 ' in skipped_lines[1]


def test_parse_blast_table_header_line(tmp_path):
    table = write(tmp_path / "hits.tsv", (
        "qseqid\tsseqid\tpident\tlength\tqlen\tbitscore\n"
        "g1\tctg1\t99.5\t950\t1000\t1700\n"
    ))
    df = parse_blast_table(str(table))
    assert len(df) == 1
    assert df.attrs['skipped_records'] == 0


def test_parse_blast_table_all_invalid(tmp_path):
    table = write(tmp_path / "hits.tsv", "g1\tctg1\tx\ty\tz\tw\n")
    with pytest.raises(InputFormatError):
        parse_blast_table(str(table))


def test_parse_blast_table_empty(tmp_path):
    table = write(tmp_path / "hits.tsv", "# only comments\n")
    df = parse_blast_table(str(table))
    assert df.empty


def test_covered_bases_merges_overlaps_and_reverse_strand():
    # 1-100 and 51-150 overlap; 300-201 is reverse strand
    assert covered_bases([(1, 100), (51, 150), (300, 201)]) == 250
    assert covered_bases([]) == 0


def test_parse_show_coords(tmp_path):
    coords = write(tmp_path / "pair.coords", (
        "1\t5000\t1\t5000\t5000\t5000\t99.50\t20000\t10000\tP\tH\n"
        "8001\t11000\t4001\t7000\t3000\t3000\t98.70\t20000\t10000\tP\tH\n"
    ))
    # 1-7000 of the 10000 bp haplotig is covered
    assert parse_show_coords(str(coords)) == pytest.approx(70.0)

    empty = write(tmp_path / "empty.coords", "")
    assert parse_show_coords(str(empty)) == 0.0


def test_parse_coverage_table(tmp_path):
    table = write(tmp_path / "coverage.tsv", (
        "primary_id\thaplotig_id\tcoverage\n"
        "X\tY\t85.5\n"
        "X\tZ\tnot_a_number\n"
        "A\tB\t150\n"
    ))
    records = parse_coverage_table(str(table))
    assert set(records) == {('X', 'Y')}
    assert records[('X', 'Y')].coverage == 85.5


def test_parse_coverage_table_missing_columns(tmp_path):
    table = write(tmp_path / "coverage.tsv", "a\tb\nX\tY\n")
    with pytest.raises(InputFormatError):
        parse_coverage_table(str(table))


def test_parse_fasta(tmp_path):
    fasta = write(tmp_path / "contigs.fasta", ">ctg1\nGGCC\nAATT\n>ctg2\nAAAA\n")
    results = parse_fasta(str(fasta), threads=1)

    assert list(results) == ['ctg1', 'ctg2']
    gc, length = results['ctg1']
    assert length == 8
    assert gc == pytest.approx(50.0)
    assert results['ctg2'] == (0.0, 4)


def test_parse_fasta_rejects_empty_and_duplicates(tmp_path):
    empty = write(tmp_path / "empty.fasta", "")
    with pytest.raises(InputFormatError):
        parse_fasta(str(empty))

    dup = write(tmp_path / "dup.fasta", ">ctg1\nACGT\n>ctg1\nACGT\n")
    with pytest.raises(InputFormatError):
        parse_fasta(str(dup))


def test_write_pair_fastas(tmp_path):
    fasta = write(tmp_path / "contigs.fasta", ">P\nACGTACGT\n>H\nACGT\n")
    pairs = [ResolvedPair('P', 'H'), ResolvedPair('P', 'missing')]
    pair_fastas = write_pair_fastas(str(fasta), pairs, tmp_path / "seqs")

    assert set(pair_fastas) == {('P', 'H')}
    primary_path, haplotig_path = pair_fastas[('P', 'H')]
    assert primary_path.read_text().startswith(">P")
    assert haplotig_path.read_text().startswith(">H")


def test_write_pair_fastas_keeps_separator_ids_apart(tmp_path):
    fasta = write(tmp_path / "contigs.fasta", ">a__b\nACGTACGT\n>c\nACGT\n>a\nAAAACCCC\n>b__c\nACGG\n")
    pairs = [ResolvedPair('a__b', 'c'), ResolvedPair('a', 'b__c')]
    pair_fastas = write_pair_fastas(str(fasta), pairs, tmp_path / "seqs")

    assert set(pair_fastas) == {('a__b', 'c'), ('a', 'b__c')}
    assert pair_fastas[('a__b', 'c')][0].read_text().startswith(">a__b")
    assert pair_fastas[('a', 'b__c')][1].read_text().startswith(">b__c")


def test_write_pair_fastas_ids_not_usable_as_file_names(tmp_path):
    fasta = write(tmp_path / "contigs.fasta", ">chr1/ctg:1-500\nACGTACGT\n>chr1/ctg:501-900\nACGT\n")
    pairs = [ResolvedPair('chr1/ctg:1-500', 'chr1/ctg:501-900')]
    pair_fastas = write_pair_fastas(str(fasta), pairs, tmp_path / "seqs")

    primary_path, haplotig_path = pair_fastas[('chr1/ctg:1-500', 'chr1/ctg:501-900')]
    assert primary_path.parent == tmp_path / "seqs"
    assert haplotig_path.read_text().startswith(">chr1/ctg:501-900")
