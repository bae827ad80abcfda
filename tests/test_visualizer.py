import os

import numpy as np
from PIL import Image

import config
from aerialgrid.pipeline import AnalysisPipeline, PipelineConfig
from aerialgrid.results import RunReport, summarize_run
from aerialgrid.visualizer import (
    create_region_overlay,
    create_summary_figure,
    overlay_alpha,
    print_statistics,
    save_region_overlay,
)

from conftest import GREEN, RED, ColorClassifier, quadrant_image


def analyzed(taxonomy, colors, track_dominance=False):
    settings = PipelineConfig(grid_size=2, track_dominance=track_dominance, taxonomy=taxonomy)
    image = quadrant_image(colors)
    return image, AnalysisPipeline(ColorClassifier(), settings).analyze_image(image, "quad.jpg")


def test_overlay_alpha_shrinks_with_finer_grids():
    assert overlay_alpha(2) == config.OVERLAY_ALPHA_COARSE
    assert overlay_alpha(4) == config.OVERLAY_ALPHA_FINE
    assert overlay_alpha(8) == config.OVERLAY_ALPHA_ULTRA
    assert overlay_alpha(2) > overlay_alpha(4) > overlay_alpha(8)


def test_overlay_colors_active_regions_only(taxonomy):
    image, result = analyzed(taxonomy, [RED, RED, RED, GREEN])

    overlay = create_region_overlay(image, result, taxonomy)

    assert overlay.shape == image.shape
    assert overlay.dtype == np.uint8
    # bottom-right region is vegetation, bottom-left has no category
    assert tuple(overlay[300, 300]) != GREEN
    assert tuple(overlay[300, 100]) == RED
    # the input image is left untouched
    assert tuple(image[300, 300]) == GREEN


def test_overlay_with_dominance_and_no_detections(taxonomy):
    image, result = analyzed(taxonomy, [RED, RED, RED, RED], track_dominance=True)

    overlay = create_region_overlay(image, result, taxonomy)

    assert tuple(overlay[300, 300]) == RED


def test_save_region_overlay(tmp_path, taxonomy):
    image, result = analyzed(taxonomy, [GREEN, RED, RED, GREEN], track_dominance=True)

    path = save_region_overlay(image, result, taxonomy, str(tmp_path / "images"), prefix="detail")

    assert os.path.basename(path) == "detail_quad.png"
    with Image.open(path) as saved:
        assert saved.size == (400, 400)


def test_summary_figure_and_statistics(tmp_path, taxonomy, capsys):
    _, result = analyzed(taxonomy, [GREEN, RED, RED, GREEN], track_dominance=True)
    summary = summarize_run(RunReport(results=[result]), taxonomy)
    output_path = str(tmp_path / "summary.png")

    create_summary_figure(summary, taxonomy, output_path)
    print_statistics(summary, taxonomy, grid_size=2)

    assert os.path.exists(output_path)
    out = capsys.readouterr().out
    assert "Vegetation: 1/1 images (100.0%)" in out
    assert "Mean active regions: 2.0/4" in out
    assert "Vegetation: 2.0 regions/image (max: 2)" in out
    assert "1. quad.jpg: 2 active regions" in out
