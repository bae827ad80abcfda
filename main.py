#!/usr/bin/env python3
"""
Aerial Region Classifier

Splits aerial images into a grid of regions, classifies every region with
a pretrained ImageNet model and maps the results onto vegetation,
solar/technical installations and buildings/infrastructure.

Usage:
    python main.py                              # Default preset on config.INPUT_DIR
    python main.py --input images/raw --preset ultra
    python main.py --preset detail --grid 6 --threshold 0.03
    python main.py --no-annotate --limit 10     # CSV only, first 10 images

Requirements:
    - Python 3.10+
    - Dependencies: pip install -e .
"""

import argparse
import os
import sys
import time
from functools import partial
from typing import Optional

import config
from aerialgrid.classifier import ImageClassifier, TorchImageClassifier
from aerialgrid.errors import AerialGridError, ConfigurationError
from aerialgrid.pipeline import AnalysisPipeline, PipelineConfig, list_images
from aerialgrid.results import RunReport, save_results_csv, summarize_run
from aerialgrid.visualizer import create_summary_figure, print_statistics, save_region_overlay


def run_analysis(
    input_dir: str,
    settings: PipelineConfig,
    output_dir: str = None,
    annotate: bool = True,
    summary_figure: bool = False,
    limit: Optional[int] = None,
    classifier: Optional[ImageClassifier] = None
) -> dict:
    """
    Run the full region classification pipeline.

    Args:
        input_dir: Folder with aerial images
        settings: Pipeline settings
        output_dir: Output directory for CSV and overlays
        annotate: Save an annotated overlay per image
        summary_figure: Save a matplotlib figure with run statistics
        limit: Only analyze the first N images (sorted by name)
        classifier: Classifier to use (default: MobileNetV2, loaded here)

    Returns:
        Dict with the run report, run summary and output paths
    """
    if limit is not None and limit < 0:
        raise ConfigurationError(f"limit must be 0 or more, got {limit}")
    if output_dir is None:
        output_dir = config.OUTPUT_DIR

    os.makedirs(output_dir, exist_ok=True)

    print("\n" + "=" * 60)
    print("AERIAL REGION CLASSIFIER")
    print("=" * 60)
    print(f"Input: {input_dir}")
    print(f"Preset: {settings.describe()}")
    print(f"Categories: {', '.join(settings.taxonomy.names)}")
    print("=" * 60 + "\n")

    start_time = time.time()

    # =========================================================================
    # Step 1: Load classifier
    # =========================================================================
    print("\n[Step 1/4] Loading classifier...")

    if classifier is None:
        classifier = TorchImageClassifier()
        print("✅ MobileNetV2 loaded")

    # =========================================================================
    # Step 2: Find images
    # =========================================================================
    print("\n[Step 2/4] Finding images...")

    try:
        paths = list_images(input_dir)
    except OSError as e:
        print(f"❌ Could not read image folder: {e}")
        paths = []

    if limit is not None:
        paths = paths[:limit]

    regions_total = len(paths) * settings.grid_size ** 2
    print(f"    Found {len(paths)} images ({regions_total:,} regions to classify)")

    # =========================================================================
    # Step 3: Analyze images
    # =========================================================================
    print("\n[Step 3/4] Analyzing regions...")

    pipeline = AnalysisPipeline(classifier, settings)
    annotator = None
    if annotate:
        annotator = partial(
            _annotate,
            taxonomy=settings.taxonomy,
            output_dir=os.path.join(output_dir, f"{settings.name}_images"),
            prefix=settings.name,
        )

    report = pipeline.run(paths, annotate=annotator)

    # =========================================================================
    # Step 4: Save results
    # =========================================================================
    print("\n[Step 4/4] Saving results...")

    csv_path = os.path.join(output_dir, f"{settings.name}_{config.RESULTS_CSV_NAME}")
    save_results_csv(report.results, settings.taxonomy, csv_path)
    print(f"    Results: {csv_path}")
    if annotate:
        print(f"    Annotated images: {os.path.join(output_dir, f'{settings.name}_images')}")

    summary = summarize_run(report, settings.taxonomy)

    figure_path = None
    if summary_figure and report.results:
        figure_path = os.path.join(output_dir, f"{settings.name}_{config.SUMMARY_FIGURE_NAME}")
        create_summary_figure(summary, settings.taxonomy, figure_path)
        print(f"    Summary figure: {figure_path}")

    print_statistics(summary, settings.taxonomy, grid_size=settings.grid_size)
    _print_failures(report)

    elapsed = time.time() - start_time
    print(f"Total processing time: {elapsed:.1f} seconds\n")

    return {
        "report": report,
        "summary": summary,
        "csv_path": csv_path,
        "figure_path": figure_path,
    }


def _annotate(image, result, taxonomy, output_dir, prefix):
    return save_region_overlay(image, result, taxonomy, output_dir, prefix=prefix)


def _print_failures(report: RunReport):
    if not report.failures:
        return
    print(f"⚠️  {report.failed} images skipped:")
    for failure in report.failures:
        print(f"   {failure.image_id} [{failure.stage}]: {failure.message}")


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be 0 or more, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Region-based multi-label classification of aerial images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Presets:
    simple   2x2 grid + whole-image pass, 3 categories
    multi    3x3 grid, 3 categories
    detail   4x4 grid, 3 categories (default)
    ultra    8x8 grid with dominance analysis, vegetation vs. buildings

Examples:
    python main.py --preset ultra
    python main.py --grid 6 --threshold 0.03 --no-annotate
        """
    )

    parser.add_argument(
        "--input",
        type=str,
        default=config.INPUT_DIR,
        help=f"Image folder (default: {config.INPUT_DIR})"
    )

    parser.add_argument(
        "--output",
        type=str,
        default=config.OUTPUT_DIR,
        help=f"Output directory (default: {config.OUTPUT_DIR})"
    )

    parser.add_argument(
        "--preset",
        choices=sorted(config.PRESETS),
        default=config.DEFAULT_PRESET,
        help=f"Analysis preset (default: {config.DEFAULT_PRESET})"
    )

    parser.add_argument("--grid", type=int, help="Override grid size (regions per side)")
    parser.add_argument("--threshold", type=float, help="Override probability threshold")
    parser.add_argument("--top-k", type=int, help="Override predictions per region")
    parser.add_argument("--bonus", type=float, help="Override keyword bonus factor")

    parser.add_argument(
        "--dominance",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Force dominance analysis on or off"
    )

    parser.add_argument(
        "--limit",
        type=_non_negative_int,
        help="Only analyze the first N images"
    )

    parser.add_argument(
        "--no-annotate",
        action="store_true",
        help="Skip rendering annotated images"
    )

    parser.add_argument(
        "--summary-figure",
        action="store_true",
        help="Save a figure with run statistics"
    )

    return parser


def main(argv=None):
    """Main entry point with CLI argument parsing."""
    args = build_parser().parse_args(argv)

    try:
        settings = PipelineConfig.from_preset(
            args.preset,
            grid_size=args.grid,
            threshold=args.threshold,
            top_k=args.top_k,
            bonus_factor=args.bonus,
            track_dominance=args.dominance,
        )

        run_analysis(
            input_dir=args.input,
            settings=settings,
            output_dir=args.output,
            annotate=not args.no_annotate,
            summary_figure=args.summary_figure,
            limit=args.limit,
        )

        print("✅ Analysis complete!")
        return 0

    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        return 1
    except AerialGridError as e:
        print(f"\n❌ Error: {e}")
        return 1
    except Exception as e:
        print(f"\n❌ Error: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
