"""
Data models for HaplotigSorter.
Defines alignment hits, candidate edges, resolved pairs, coverage calls,
the final partition and the per-contig summary used for reporting.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from haplotig_sorter.core.errors import ConfigurationError

HIT_COLUMNS = ['gene_id', 'contig_id', 'identity', 'aln_len', 'gene_len', 'bitscore']
FILTERED_COLUMNS = ['gene_id', 'contig_id', 'identity', 'aln_len', 'gene_len']

ContigGeneSet = Dict[str, FrozenSet[str]]


class Role(Enum):
    """
    Enum representing the role assigned to a contig by pair resolution.
    """
    UNASSIGNED = "UNASSIGNED"
    PRIMARY = "PRIMARY"
    HAPLOTIG = "HAPLOTIG"


class PairOutcome(Enum):
    """
    Result of checking a resolved pair against whole-sequence coverage.
    """
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    UNCONFIRMED = "UNCONFIRMED"


@dataclass(frozen=True)
class AlignmentHit:
    """
    One local alignment of a gene against a contig.
    """
    gene_id: str
    contig_id: str
    identity: float
    aln_len: int
    gene_len: int
    bitscore: float

    @property
    def length_fraction(self) -> float:
        return self.aln_len / self.gene_len if self.gene_len > 0 else 0.0


@dataclass(frozen=True)
class CandidateEdge:
    """
    Directed edge source -> target; share_fraction is relative to the source's gene set.
    """
    source: str
    target: str
    share_fraction: float


@dataclass(frozen=True)
class ContigDecision:
    contig_id: str
    role: Role = Role.UNASSIGNED
    primary_id: Optional[str] = None


@dataclass(frozen=True, order=True)
class ResolvedPair:
    primary_id: str
    haplotig_id: str
    share_fraction: float = field(default=0.0, compare=False)

    @property
    def key(self) -> Tuple[str, str]:
        return self.primary_id, self.haplotig_id

    @property
    def label(self) -> str:
        return f"{self.primary_id} -> {self.haplotig_id}"


@dataclass
class Resolution:
    """
    Output of pair resolution: the pairs to verify, the contigs left without a pair,
    and the role decided for every contig that took part in a candidate edge.
    """
    pairs: List[ResolvedPair] = field(default_factory=list)
    unpaired: List[str] = field(default_factory=list)
    decisions: Dict[str, ContigDecision] = field(default_factory=dict)


@dataclass(frozen=True)
class CoverageRecord:
    """
    Percentage of the haplotig covered by its alignment to the primary.
    coverage is None when the whole-sequence aligner failed for the pair.
    """
    primary_id: str
    haplotig_id: str
    coverage: Optional[float]
    error: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return self.primary_id, self.haplotig_id


@dataclass(frozen=True, order=True)
class CoverageCall:
    primary_id: str
    haplotig_id: str
    coverage: Optional[float] = field(compare=False)
    outcome: PairOutcome = field(compare=False)

    @property
    def accepted(self) -> bool:
        return self.outcome == PairOutcome.CONFIRMED


@dataclass(frozen=True)
class FinalPartition:
    """
    Disjoint primary and haplotig sets over every contig that survived gene filtering.
    """
    primary: Tuple[str, ...] = ()
    haplotigs: Tuple[str, ...] = ()
    haplotig_to_primary: Dict[str, str] = field(default_factory=dict)
    calls: Tuple[CoverageCall, ...] = ()


@dataclass
class ContigSummary:
    """
    Data class representing a summary of a contig and its final classification.
    """
    contig_id: str
    length: int
    gc_content: float = 0.0
    genes: Set[str] = field(default_factory=set)
    assessed: bool = False
    role: Role = Role.UNASSIGNED
    primary_id: Optional[str] = None
    coverage: Optional[float] = None
    outcome: Optional[PairOutcome] = None


@dataclass
class PipelineParameters:
    """
    Numeric thresholds that drive filtering, pairing and classification.
    """
    min_identity: int = 90
    min_gene: int = 3
    min_align_length: float = 0.7
    min_gene_cover: float = 0.8
    min_coverage: int = 80
    threads: int = 1

    def validate(self) -> None:
        """
        Check every parameter against its documented range.

        :raises ConfigurationError: on the first out-of-range value.
        """
        if not 1 <= self.min_identity <= 100:
            raise ConfigurationError(f"min_identity must be in 1-100, got {self.min_identity}")
        if self.min_gene < 0:
            raise ConfigurationError(f"min_gene must be >= 0, got {self.min_gene}")
        if not 0.0 <= self.min_align_length <= 1.0:
            raise ConfigurationError(f"min_align_length must be in 0-1, got {self.min_align_length}")
        if not 0.0 <= self.min_gene_cover <= 1.0:
            raise ConfigurationError(f"min_gene_cover must be in 0-1, got {self.min_gene_cover}")
        if not 1 <= self.min_coverage <= 100:
            raise ConfigurationError(f"min_coverage must be in 1-100, got {self.min_coverage}")
        if self.threads < 1:
            raise ConfigurationError(f"threads must be >= 1, got {self.threads}")
