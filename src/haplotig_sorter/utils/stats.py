"""
Assembly statistics for the input assembly and the primary/haplotig sets.
"""

from typing import Dict, Iterable

import numpy as np

NX_LEVELS = range(50, 110, 10)


def calculate_assembly_stats(lengths: Iterable[int]) -> Dict[str, int]:
    """
    Calculate total bases, contig count, and N50..N100 with the number of contigs reaching each.

    :param lengths: Contig lengths.
    :return: Dictionary with 'Total Bases', 'Num Contigs', 'N<x>' and 'N<x>_count' keys.
    """
    lengths_sorted = np.sort(np.asarray(list(lengths), dtype=np.int64))[::-1]
    stats = {"Total Bases": int(lengths_sorted.sum()), "Num Contigs": int(lengths_sorted.size)}

    if lengths_sorted.size == 0:
        for level in NX_LEVELS:
            stats[f"N{level}"] = 0
            stats[f"N{level}_count"] = 0
        return stats

    cumulative = np.cumsum(lengths_sorted)
    total = cumulative[-1]
    for level in NX_LEVELS:
        idx = int(np.searchsorted(cumulative, total * level / 100.0, side='left'))
        idx = min(idx, lengths_sorted.size - 1)
        stats[f"N{level}"] = int(lengths_sorted[idx])
        stats[f"N{level}_count"] = idx + 1
    return stats
