"""
BLAST wrapper producing the gene-vs-contig hit table.
"""

import logging
from pathlib import Path
from typing import Optional

from haplotig_sorter.aligners.commands import require_binary, run_command
from haplotig_sorter.core.errors import ExternalToolFailure

logger = logging.getLogger(__name__)

OUTFMT = "6 qseqid sseqid pident length qlen bitscore"


class BlastnAligner:
    """
    Aligns gene sequences against a nucleotide database built from the contigs.
    """

    def __init__(
        self,
        threads: int = 1,
        evalue: float = 1e-10,
        blastn: str = 'blastn',
        makeblastdb: str = 'makeblastdb',
        timeout: Optional[int] = None
    ):
        self.threads = threads
        self.evalue = evalue
        self.blastn = blastn
        self.makeblastdb = makeblastdb
        self.timeout = timeout

    def run(self, genes_fasta: Path, contigs_fasta: Path, work_dir: Path, min_identity: int) -> Path:
        """
        Build the contig database and search every gene against it.

        :param genes_fasta: Gene sequences (queries).
        :param contigs_fasta: Contig sequences (database).
        :param work_dir: Directory for the database and the output table.
        :param min_identity: Minimum percent identity passed to blastn.
        :return: Path of the tabular hit file.
        :raises ExternalToolFailure: if either tool is missing or fails, or the hit table is missing or empty.
        """
        require_binary(self.makeblastdb)
        require_binary(self.blastn)
        work_dir.mkdir(parents=True, exist_ok=True)

        db_prefix = work_dir / "contigs_db"
        run_command([
            self.makeblastdb, '-in', str(contigs_fasta), '-dbtype', 'nucl', '-out', str(db_prefix)
        ], timeout=self.timeout)

        output = work_dir / "gene_hits.tsv"
        logger.info(f"Running {self.blastn} for {genes_fasta} against {contigs_fasta}")
        run_command([
            self.blastn,
            '-query', str(genes_fasta),
            '-db', str(db_prefix),
            '-perc_identity', str(min_identity),
            '-evalue', str(self.evalue),
            '-outfmt', OUTFMT,
            '-num_threads', str(self.threads),
            '-out', str(output)
        ], timeout=self.timeout)

        if not output.exists() or output.stat().st_size == 0:
            raise ExternalToolFailure(self.blastn, f"no hits written to {output}")
        logger.debug(f"{self.blastn} wrote {output.stat().st_size} bytes to {output}")
        return output
