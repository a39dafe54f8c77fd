"""
MUMmer wrapper measuring how much of a haplotig aligns to its primary.
"""

import logging
from pathlib import Path
from typing import Optional

from haplotig_sorter.aligners.commands import require_binary, run_command
from haplotig_sorter.core.errors import ExternalToolFailure, InputFormatError
from haplotig_sorter.parsers.coverage_parser import parse_show_coords

logger = logging.getLogger(__name__)


class NucmerAligner:
    """
    Runs nucmer (primary as reference, haplotig as query) followed by show-coords.
    Instances are picklable so they can be shipped to pool workers.
    """

    def __init__(
        self,
        nucmer: str = 'nucmer',
        show_coords: str = 'show-coords',
        min_cluster: Optional[int] = None,
        timeout: Optional[int] = None
    ):
        self.nucmer = nucmer
        self.show_coords = show_coords
        self.min_cluster = min_cluster
        self.timeout = timeout

    def coverage(self, primary_fasta: Path, haplotig_fasta: Path, prefix: Path) -> float:
        """
        :param primary_fasta: Reference sequence.
        :param haplotig_fasta: Query sequence.
        :param prefix: Output prefix; <prefix>.delta and <prefix>.coords are written.
        :return: Percentage of the haplotig covered by alignments.
        :raises ExternalToolFailure: if a tool is missing, fails, or leaves no delta file.
        """
        require_binary(self.nucmer)
        require_binary(self.show_coords)
        prefix = Path(prefix)
        prefix.parent.mkdir(parents=True, exist_ok=True)

        cmd = [self.nucmer, '-p', str(prefix)]
        if self.min_cluster is not None:
            cmd += ['-c', str(self.min_cluster)]
        cmd += [str(primary_fasta), str(haplotig_fasta)]
        run_command(cmd, timeout=self.timeout)

        delta = Path(f"{prefix}.delta")
        if not delta.exists():
            raise ExternalToolFailure(self.nucmer, f"no delta file at {delta}")

        result = run_command([self.show_coords, '-T', '-H', '-l', str(delta)], timeout=self.timeout)
        coords = Path(f"{prefix}.coords")
        coords.write_text(result.stdout, encoding='utf-8')

        try:
            return parse_show_coords(str(coords))
        except InputFormatError as e:
            raise ExternalToolFailure(self.show_coords, str(e)) from e
