"""
Aggregation module

Combines per-region categorizations of one image into image-level
statistics: detected categories, regions per category, active regions
and (optionally) the dominant category of the whole image.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from aerialgrid.scoring import RegionCategorization
from aerialgrid.taxonomy import Taxonomy


@dataclass(frozen=True)
class ImageAggregate:
    """
    Image-level category statistics.

    Attributes:
        all_categories: Union of all region categories, taxonomy order
        region_counts: Number of regions containing each taxonomy category
                       (every category present, 0 if never detected)
        active_region_count: Regions with at least one category
        total_region_count: All regions of the grid
        dominant_category: Most frequent per-region dominant category, or None
        dominance_percent: 100 * dominant tally / total_region_count
        dominance_counts: Tally of per-region dominant categories
    """

    all_categories: Tuple[str, ...] = ()
    region_counts: Dict[str, int] = field(default_factory=dict)
    active_region_count: int = 0
    total_region_count: int = 0
    dominant_category: Optional[str] = None
    dominance_percent: float = 0.0
    dominance_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def category_memberships(self) -> int:
        """Sum of region counts; a multi-label region counts once per category."""
        return sum(self.region_counts.values())


def resolve_dominance(
    categorizations: Sequence[RegionCategorization]
) -> Tuple[Optional[str], int, Dict[str, int]]:
    """
    Find the category that is dominant in the most regions.

    Regions are scanned in the given (row-major) order. On a tie the
    category that reached the winning tally first is kept.

    Returns:
        Tuple of (dominant category or None, its tally, tally per category)
    """
    counts: Dict[str, int] = {}
    dominant = None
    best = 0

    for categorization in categorizations:
        name = categorization.dominant_category
        if name is None:
            continue
        counts[name] = counts.get(name, 0) + 1
        if counts[name] > best:
            best = counts[name]
            dominant = name

    return dominant, best, counts


def aggregate_regions(
    categorizations: Sequence[RegionCategorization],
    taxonomy: Taxonomy,
    track_dominance: bool = True
) -> ImageAggregate:
    """
    Aggregate all region categorizations of one image.

    Args:
        categorizations: One entry per region, row-major
        taxonomy: Taxonomy used for scoring
        track_dominance: Compute dominant category and percentage

    Returns:
        ImageAggregate
    """
    region_counts = {name: 0 for name in taxonomy.names}
    detected = set()
    active = 0

    for categorization in categorizations:
        if categorization.is_active:
            active += 1
        for name in categorization.categories:
            detected.add(name)
            region_counts[name] += 1

    total = len(categorizations)
    dominant, tally, dominance_counts = None, 0, {}
    if track_dominance:
        dominant, tally, dominance_counts = resolve_dominance(categorizations)

    return ImageAggregate(
        all_categories=taxonomy.ordered(detected),
        region_counts=region_counts,
        active_region_count=active,
        total_region_count=total,
        dominant_category=dominant,
        dominance_percent=(100.0 * tally / total) if (dominant and total) else 0.0,
        dominance_counts=dominance_counts,
    )
