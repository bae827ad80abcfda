"""
Result records module

Assembles the per-image output record consumed by the CSV export, the
overlay renderer and the console summary, and collects per-image
failures into a run report.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from aerialgrid.aggregator import ImageAggregate
from aerialgrid.classifier import ClassificationOutcome, Prediction
from aerialgrid.grid import Region
from aerialgrid.scoring import RegionCategorization
from aerialgrid.taxonomy import Taxonomy


@dataclass(frozen=True)
class RegionSummary:
    """What is kept of a region once the image has been aggregated."""

    region_id: str
    position_name: str
    rect: Tuple[int, int, int, int]
    row: int
    col: int
    categories: Tuple[str, ...]
    scores: Dict[str, float]
    dominant_category: Optional[str]
    top_predictions: Tuple[Prediction, ...]
    confidence: float
    failed: bool = False

    @property
    def top_label(self) -> str:
        return self.top_predictions[0].label if self.top_predictions else "unknown"


@dataclass(frozen=True)
class AnalysisResult:
    """
    Final record for one image.

    Attributes:
        image_id: File name of the image
        image_path: Path the image was loaded from
        image_size: (width, height) in pixels
        grid_size: Regions per side
        aggregate: Image-level statistics
        regions: Per-region summaries, row-major
        detected_categories: Region categories plus whole-image categories
        whole_image: Categorization of the full image, if that pass ran
        annotated_path: Path of the rendered overlay, if one was saved
    """

    image_id: str
    image_path: str
    image_size: Tuple[int, int]
    grid_size: int
    aggregate: ImageAggregate
    regions: Tuple[RegionSummary, ...]
    detected_categories: Tuple[str, ...]
    whole_image: Optional[RegionCategorization] = None
    annotated_path: Optional[str] = None

    @property
    def category_count(self) -> int:
        return len(self.detected_categories)

    @property
    def average_categories_per_region(self) -> float:
        if not self.regions:
            return 0.0
        return self.aggregate.category_memberships / len(self.regions)

    @property
    def failed_region_count(self) -> int:
        return sum(1 for r in self.regions if r.failed)

    def has_category(self, name: str) -> bool:
        return name in self.detected_categories

    def region_count(self, name: str) -> int:
        return self.aggregate.region_counts.get(name, 0)

    def regions_with(self, name: str) -> List[str]:
        """Ids of the regions containing a category."""
        return [r.region_id for r in self.regions if name in r.categories]

    def dominant_region_count(self, name: str) -> int:
        return self.aggregate.dominance_counts.get(name, 0)


@dataclass(frozen=True)
class ImageFailure:
    """An image that could not be analyzed."""

    image_id: str
    stage: str
    message: str


@dataclass
class RunReport:
    """Results and failures of one run, in processing order."""

    results: List[AnalysisResult] = field(default_factory=list)
    failures: List[ImageFailure] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)


def build_result(
    image_id: str,
    image_path: str,
    image_size: Tuple[int, int],
    grid_size: int,
    regions: Sequence[Region],
    outcomes: Sequence[ClassificationOutcome],
    categorizations: Sequence[RegionCategorization],
    aggregate: ImageAggregate,
    taxonomy: Taxonomy,
    whole_image: Optional[RegionCategorization] = None,
    top_n: int = 3
) -> AnalysisResult:
    """
    Build the AnalysisResult for one image.

    Args:
        image_id: Image file name
        image_path: Image path
        image_size: (width, height)
        grid_size: Regions per side
        regions: Grid regions, row-major
        outcomes: Classifier outcome per region
        categorizations: Scoring result per region
        aggregate: Aggregated statistics
        taxonomy: Taxonomy used for the run
        whole_image: Optional categorization of the full image
        top_n: Number of predictions kept per region summary

    Returns:
        AnalysisResult
    """
    if not len(regions) == len(outcomes) == len(categorizations):
        raise ValueError(
            f"Mismatched inputs: {len(regions)} regions, {len(outcomes)} outcomes, "
            f"{len(categorizations)} categorizations"
        )

    summaries = tuple(
        RegionSummary(
            region_id=region.id,
            position_name=region.position_name,
            rect=region.rect,
            row=region.row,
            col=region.col,
            categories=categorization.categories,
            scores=dict(categorization.scores),
            dominant_category=categorization.dominant_category,
            top_predictions=outcome.predictions[:top_n],
            confidence=outcome.confidence,
            failed=outcome.failed,
        )
        for region, outcome, categorization in zip(regions, outcomes, categorizations)
    )

    detected = set(aggregate.all_categories)
    if whole_image is not None:
        detected.update(whole_image.categories)

    return AnalysisResult(
        image_id=image_id,
        image_path=str(image_path),
        image_size=tuple(image_size),
        grid_size=grid_size,
        aggregate=aggregate,
        regions=summaries,
        detected_categories=taxonomy.ordered(detected),
        whole_image=whole_image,
    )


# =============================================================================
# CSV EXPORT
# =============================================================================

def result_to_row(result: AnalysisResult, taxonomy: Taxonomy) -> dict:
    """Flatten one result into a CSV row."""
    row = {
        "image": result.image_id,
        "detected_categories": "; ".join(result.detected_categories),
        "category_count": result.category_count,
        "active_regions": result.aggregate.active_region_count,
        "total_regions": result.aggregate.total_region_count,
    }

    for category in taxonomy:
        row[f"{category.slug}_regions"] = result.region_count(category.name)
    for category in taxonomy:
        row[f"{category.slug}_present"] = result.has_category(category.name)
    for category in taxonomy:
        row[f"{category.slug}_dominant_regions"] = result.dominant_region_count(category.name)

    row["avg_categories_per_region"] = round(result.average_categories_per_region, 2)
    row["dominant_category"] = result.aggregate.dominant_category or "none"
    row["dominance_percent"] = round(result.aggregate.dominance_percent, 1)
    row["region_details"] = "; ".join(
        f"{name}:[{','.join(result.regions_with(name))}]"
        for name in result.aggregate.all_categories
    )
    row["failed_regions"] = result.failed_region_count
    row["annotated_path"] = result.annotated_path or ""
    return row


def csv_columns(taxonomy: Taxonomy) -> List[str]:
    columns = ["image", "detected_categories", "category_count", "active_regions", "total_regions"]
    columns += [f"{c.slug}_regions" for c in taxonomy]
    columns += [f"{c.slug}_present" for c in taxonomy]
    columns += [f"{c.slug}_dominant_regions" for c in taxonomy]
    columns += [
        "avg_categories_per_region", "dominant_category", "dominance_percent",
        "region_details", "failed_regions", "annotated_path",
    ]
    return columns


def results_to_frame(results: Sequence[AnalysisResult], taxonomy: Taxonomy) -> pd.DataFrame:
    """One row per image, columns in a stable order (header only if empty)."""
    rows = [result_to_row(r, taxonomy) for r in results]
    return pd.DataFrame(rows, columns=csv_columns(taxonomy))


def save_results_csv(
    results: Sequence[AnalysisResult],
    taxonomy: Taxonomy,
    output_path: str
) -> str:
    """
    Write results to CSV. The file is always written, even with no results.

    Returns:
        The output path
    """
    directory = os.path.dirname(output_path)
    os.makedirs(directory if directory else ".", exist_ok=True)
    results_to_frame(results, taxonomy).to_csv(output_path, index=False, encoding="utf-8")
    return output_path


# =============================================================================
# RUN SUMMARY
# =============================================================================

def summarize_run(report: RunReport, taxonomy: Taxonomy, top_n: int = 3) -> dict:
    """
    Compute run-wide statistics over all analyzed images.

    Args:
        report: Run report
        taxonomy: Taxonomy used for the run
        top_n: Number of images listed in top_images

    Returns:
        Dict with image counts per category, multi-category counts,
        mean and max regions per category, the images with the most active
        regions, dominance distribution and per-position hits
    """
    results = report.results
    n = len(results)

    def pct(count: int) -> float:
        return (count / n) * 100 if n else 0.0

    images_per_category = {
        name: sum(1 for r in results if r.has_category(name))
        for name in taxonomy.names
    }

    dominance: Dict[str, int] = {}
    for r in results:
        if r.aggregate.dominant_category:
            name = r.aggregate.dominant_category
            dominance[name] = dominance.get(name, 0) + 1

    position_hits: Dict[str, int] = {}
    for r in results:
        for region in r.regions:
            position_hits.setdefault(region.region_id, 0)
            if region.categories:
                position_hits[region.region_id] += 1

    # Images with the most active regions, ties keep processing order
    ranked = sorted(results, key=lambda r: -r.aggregate.active_region_count)[:top_n]
    top_images = [(r.image_id, r.aggregate.active_region_count, r.detected_categories) for r in ranked]

    multi = sum(1 for r in results if r.category_count > 1)
    all_categories = sum(1 for r in results if r.category_count == len(taxonomy))

    return {
        "images_processed": n,
        "images_failed": report.failed,
        "images_per_category": images_per_category,
        "category_percentages": {k: pct(v) for k, v in images_per_category.items()},
        "multi_category_images": multi,
        "multi_category_percentage": pct(multi),
        "all_category_images": all_categories,
        "all_category_percentage": pct(all_categories),
        "mean_active_regions": (
            sum(r.aggregate.active_region_count for r in results) / n if n else 0.0
        ),
        "mean_categories_per_region": (
            sum(r.average_categories_per_region for r in results) / n if n else 0.0
        ),
        "mean_region_counts": {
            name: (sum(r.region_count(name) for r in results) / n if n else 0.0)
            for name in taxonomy.names
        },
        "max_region_counts": {
            name: max((r.region_count(name) for r in results), default=0)
            for name in taxonomy.names
        },
        "top_images": top_images,
        "dominance": dominance,
        "region_hits": dict(sorted(position_hits.items())),
        "failed_regions": sum(r.failed_region_count for r in results),
    }
