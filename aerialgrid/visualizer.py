"""
Visualization module

Creates output images showing the region classification results,
including colored region overlays, grid lines, legends and statistics.
"""

import os
from typing import Dict, Optional, Tuple

import cv2
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Patch

import config
from aerialgrid.results import AnalysisResult
from aerialgrid.taxonomy import Taxonomy

FONT = cv2.FONT_HERSHEY_SIMPLEX


def overlay_alpha(grid_size: int) -> float:
    """Fill opacity for a grid: finer grids get fainter fills."""
    if grid_size <= 3:
        return config.OVERLAY_ALPHA_COARSE
    if grid_size <= 5:
        return config.OVERLAY_ALPHA_FINE
    return config.OVERLAY_ALPHA_ULTRA


def _font_scale(image: np.ndarray) -> float:
    height, width = image.shape[:2]
    return max(0.35, min(width, height) / 1600)


def blend_rect(
    image: np.ndarray,
    rect: Tuple[int, int, int, int],
    color: Tuple[int, int, int],
    alpha: float
):
    """Blend a solid color into a rectangle of the image (in place)."""
    x, y, w, h = rect
    patch = image[y:y + h, x:x + w]
    patch[:] = ((1 - alpha) * patch + alpha * np.array(color)).astype(np.uint8)


def draw_label(
    image: np.ndarray,
    text: str,
    origin: Tuple[int, int],
    background: Tuple[int, int, int],
    scale: float,
    color: Tuple[int, int, int] = (255, 255, 255)
):
    """Draw text on a filled box whose top-left corner is at origin."""
    thickness = max(1, int(round(scale * 2)))
    (text_w, text_h), baseline = cv2.getTextSize(text, FONT, scale, thickness)
    x, y = origin
    pad = max(2, int(4 * scale))
    cv2.rectangle(
        image, (x, y), (x + text_w + 2 * pad, y + text_h + baseline + 2 * pad),
        background, thickness=-1
    )
    cv2.putText(image, text, (x + pad, y + pad + text_h), FONT, scale, color, thickness, cv2.LINE_AA)
    return text_h + baseline + 2 * pad


def draw_grid_lines(image: np.ndarray, result: AnalysisResult, thickness: int = 1):
    """Draw region boundaries (interior lines only)."""
    height, width = image.shape[:2]
    lines = image.copy()
    for region in result.regions:
        x, y, _, _ = region.rect
        if region.row == 0 and region.col > 0:
            cv2.line(lines, (x, 0), (x, height - 1), config.GRID_LINE_COLOR, thickness)
        if region.col == 0 and region.row > 0:
            cv2.line(lines, (0, y), (width - 1, y), config.GRID_LINE_COLOR, thickness)
    cv2.addWeighted(lines, 0.3, image, 0.7, 0, dst=image)


def draw_region_overlays(image: np.ndarray, result: AnalysisResult, taxonomy: Taxonomy):
    """
    Color every region that contains at least one category.

    The fill uses the region's dominant category if known, otherwise the
    first detected one. Each detected category gets a label when the
    region is large enough to hold it.
    """
    alpha = overlay_alpha(result.grid_size)
    scale = _font_scale(image) * (2.0 / max(2, result.grid_size)) ** 0.5
    border = 4 if result.grid_size <= 3 else 1

    for region in result.regions:
        if not region.categories:
            continue

        primary = taxonomy[region.dominant_category or region.categories[0]]
        x, y, w, h = region.rect
        blend_rect(image, region.rect, primary.rgb, alpha)
        cv2.rectangle(image, (x, y), (x + w - 1, y + h - 1), primary.rgb, border)

        # Labels only fit into reasonably large regions
        if w < 60 or h < 40:
            continue

        offset = y + 4
        offset += draw_label(image, region.region_id, (x + 4, offset), (0, 0, 0), scale * 0.8)
        for name in region.categories:
            if offset > y + h - 20:
                break
            category = taxonomy[name]
            offset += draw_label(image, category.short_name, (x + 4, offset), category.rgb, scale) + 2


def draw_legend(image: np.ndarray, result: AnalysisResult, taxonomy: Taxonomy):
    """Legend box in the top-right corner with region counts per category."""
    if not result.detected_categories:
        return

    scale = _font_scale(image)
    thickness = max(1, int(round(scale * 2)))
    total = result.aggregate.total_region_count
    lines = []

    if result.aggregate.dominant_category:
        dominant = taxonomy[result.aggregate.dominant_category]
        lines.append((f"Dominant: {dominant.short_name} ({result.aggregate.dominance_percent:.1f}%)",
                      dominant.rgb))

    for name in result.detected_categories:
        category = taxonomy[name]
        count = result.region_count(name)
        percentage = (count / total) * 100 if total else 0.0
        lines.append((f"{category.short_name}: {count}/{total} ({percentage:.1f}%)", category.rgb))

    sizes = [cv2.getTextSize(text, FONT, scale, thickness)[0] for text, _ in lines]
    line_h = max(h for _, h in sizes) + int(12 * scale) + 4
    box_w = max(w for w, _ in sizes) + int(40 * scale) + 20
    box_h = line_h * len(lines) + 10

    height, width = image.shape[:2]
    x0 = max(0, width - box_w - 10)
    y0 = 10
    blend_rect(image, (x0, y0, min(box_w, width - x0), min(box_h, height - y0)),
               config.LEGEND_BACKGROUND, 0.8)

    swatch = int(16 * scale) + 4
    for i, (text, color) in enumerate(lines):
        baseline_y = y0 + 5 + line_h * (i + 1) - int(6 * scale) - 2
        cv2.rectangle(image, (x0 + 8, baseline_y - swatch), (x0 + 8 + swatch, baseline_y), color, -1)
        cv2.putText(image, text, (x0 + 16 + swatch, baseline_y), FONT, scale,
                    (255, 255, 255), thickness, cv2.LINE_AA)


def draw_header(image: np.ndarray, result: AnalysisResult):
    """Statistics header in the top-left corner."""
    scale = _font_scale(image)
    aggregate = result.aggregate
    text = (
        f"{result.category_count} categories | "
        f"{aggregate.active_region_count}/{aggregate.total_region_count} active regions | "
        f"{result.grid_size}x{result.grid_size} grid"
    )
    draw_label(image, text, (10, 10), config.LEGEND_BACKGROUND, scale)


def create_region_overlay(
    image: np.ndarray,
    result: AnalysisResult,
    taxonomy: Taxonomy
) -> np.ndarray:
    """
    Render the full annotated overlay for one image.

    Args:
        image: Original RGB image
        result: Analysis result of that image
        taxonomy: Taxonomy providing display colors

    Returns:
        Annotated copy of the image
    """
    overlay = image.copy()
    draw_region_overlays(overlay, result, taxonomy)
    draw_grid_lines(overlay, result)
    draw_legend(overlay, result, taxonomy)
    draw_header(overlay, result)
    return overlay


def save_region_overlay(
    image: np.ndarray,
    result: AnalysisResult,
    taxonomy: Taxonomy,
    output_dir: str,
    prefix: str = "annotated"
) -> str:
    """
    Render the overlay and save it as PNG at full resolution.

    Returns:
        Path of the saved file
    """
    from PIL import Image

    overlay = create_region_overlay(image, result, taxonomy)
    stem = os.path.splitext(result.image_id)[0]
    output_path = os.path.join(output_dir, f"{prefix}_{stem}.png")

    os.makedirs(output_dir if output_dir else ".", exist_ok=True)
    Image.fromarray(overlay).save(output_path)
    return output_path


def create_summary_figure(summary: dict, taxonomy: Taxonomy, output_path: str):
    """
    Save a two-panel figure with run-wide statistics.

    Panels:
    1. Share of images in which each category was detected
    2. Mean number of regions per image for each category
    """
    names = list(taxonomy.names)
    colors = [tuple(c / 255 for c in taxonomy[n].rgb) for n in names]
    labels = [taxonomy[n].short_name for n in names]

    fig, axes = plt.subplots(1, 2, figsize=(14, 6))
    fig.suptitle(
        f"Region Classification Summary\n"
        f"{summary['images_processed']} images analyzed | {summary['images_failed']} failed",
        fontsize=14
    )

    axes[0].bar(labels, [summary["category_percentages"][n] for n in names], color=colors)
    axes[0].set_title("Images with category (%)")
    axes[0].set_ylim(0, 100)

    axes[1].bar(labels, [summary["mean_region_counts"][n] for n in names], color=colors)
    axes[1].set_title("Mean regions per image")

    legend_elements = [Patch(facecolor=color, label=name) for name, color in zip(names, colors)]
    fig.legend(handles=legend_elements, loc="lower center", ncol=len(names), fontsize=12, framealpha=0.9)

    plt.tight_layout()
    plt.subplots_adjust(bottom=0.15)

    os.makedirs(os.path.dirname(output_path) if os.path.dirname(output_path) else ".", exist_ok=True)
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)


def print_statistics(summary: dict, taxonomy: Taxonomy, grid_size: Optional[int] = None):
    """
    Print run statistics to console.
    """
    n = summary["images_processed"]
    print("\n" + "=" * 60)
    print("REGION CLASSIFICATION RESULTS")
    print("=" * 60)
    print(f"Images analyzed: {n} | failed: {summary['images_failed']}")
    print("-" * 60)

    for category in taxonomy:
        count = summary["images_per_category"][category.name]
        print(f"{category.icon} {category.name}: {count}/{n} images "
              f"({summary['category_percentages'][category.name]:.1f}%)")

    print("-" * 60)
    print(f"Multiple categories: {summary['multi_category_images']}/{n} images "
          f"({summary['multi_category_percentage']:.1f}%)")
    print(f"All {len(taxonomy)} categories: {summary['all_category_images']}/{n} images "
          f"({summary['all_category_percentage']:.1f}%)")

    if grid_size:
        total = grid_size * grid_size
        print(f"Mean active regions: {summary['mean_active_regions']:.1f}/{total}")
    print(f"Mean categories per region: {summary['mean_categories_per_region']:.2f}")

    if n:
        print("-" * 60)
        print("Regions per category:")
        for category in taxonomy:
            print(f"   {category.icon} {category.name}: "
                  f"{summary['mean_region_counts'][category.name]:.1f} regions/image "
                  f"(max: {summary['max_region_counts'][category.name]})")

    if summary["top_images"]:
        print("-" * 60)
        print("🏆 Most active images:")
        for rank, (image_id, active, categories) in enumerate(summary["top_images"], start=1):
            labels = " + ".join(f"{taxonomy[name].icon}{taxonomy[name].short_name}" for name in categories)
            print(f"   {rank}. {image_id}: {active} active regions [{labels}]")

    dominance: Dict[str, int] = summary["dominance"]
    if dominance:
        print("-" * 60)
        print("Dominant category per image:")
        for name, count in sorted(dominance.items(), key=lambda item: -item[1]):
            icon = taxonomy[name].icon if name in taxonomy else "?"
            print(f"   {icon} {name}: {count}/{n} images ({(count / n) * 100:.1f}%)")

    if summary["failed_regions"]:
        print(f"⚠️  {summary['failed_regions']} regions could not be classified")
    print("=" * 60 + "\n")
