import numpy as np
import pytest

import config
from aerialgrid.errors import ConfigurationError, GridConfigurationError
from aerialgrid.pipeline import AnalysisPipeline, PipelineConfig, list_images, load_image
from aerialgrid.taxonomy import default_taxonomy

from conftest import BLUE, GRAY, GREEN, RED, YELLOW, ColorClassifier, quadrant_image, save_image

VEG = "Vegetation"
SOLAR = "Solar/Technical"
BUILD = "Buildings/Infrastructure"


def settings_for(categories, **overrides):
    values = dict(grid_size=2, threshold=0.02, top_k=5, bonus_factor=0.2,
                  track_dominance=True, taxonomy=categories)
    values.update(overrides)
    return PipelineConfig(**values)


# =============================================================================
# CONFIGURATION
# =============================================================================

def test_presets_match_config():
    for name, preset in config.PRESETS.items():
        settings = PipelineConfig.from_preset(name)
        assert settings.name == name
        assert settings.grid_size == preset["grid_size"]
        assert settings.threshold == preset["threshold"]
        assert settings.taxonomy == default_taxonomy(preset["taxonomy"])


def test_ultra_preset_tracks_dominance_on_two_categories():
    settings = PipelineConfig.from_preset("ultra")

    assert settings.grid_size == 8
    assert settings.track_dominance
    assert len(settings.taxonomy) == 2


def test_preset_overrides_ignore_none():
    settings = PipelineConfig.from_preset("detail", grid_size=6, threshold=None)

    assert settings.grid_size == 6
    assert settings.threshold == config.PRESETS["detail"]["threshold"]


@pytest.mark.parametrize("overrides", [
    {"grid_size": 0},
    {"grid_size": True},
    {"grid_size": 2.0},
    {"top_k": 2.5},
    {"whole_image_top_k": 0},
    {"input_size": "224"},
    {"threshold": 1.0},
    {"threshold": -0.1},
    {"top_k": 0},
    {"bonus_factor": -1},
    {"taxonomy": ["Vegetation"]},
])
def test_invalid_settings_are_rejected(taxonomy, overrides):
    with pytest.raises(ConfigurationError):
        settings_for(taxonomy, **overrides)


def test_unknown_preset_is_rejected():
    with pytest.raises(ConfigurationError):
        PipelineConfig.from_preset("mega")


def test_settings_are_immutable(taxonomy):
    settings = settings_for(taxonomy)
    with pytest.raises(AttributeError):
        settings.grid_size = 3


# =============================================================================
# SINGLE IMAGE
# =============================================================================

def test_analyze_image_categorizes_each_region(taxonomy, color_classifier):
    pipeline = AnalysisPipeline(color_classifier, settings_for(taxonomy))
    image = quadrant_image([GREEN, GRAY, YELLOW, RED])

    result = pipeline.analyze_image(image, "quad.png")

    assert [r.categories for r in result.regions] == [
        (VEG,),
        (SOLAR, BUILD),
        (SOLAR,),
        (),
    ]
    assert result.aggregate.active_region_count == 3
    assert result.aggregate.region_counts == {VEG: 1, SOLAR: 2, BUILD: 1}
    assert result.image_size == (400, 400)
    assert len(color_classifier.calls) == 4


def test_regions_are_classified_in_row_major_order(taxonomy, color_classifier):
    pipeline = AnalysisPipeline(color_classifier, settings_for(taxonomy))
    pipeline.analyze_image(quadrant_image([GREEN, GRAY, YELLOW, BLUE]), "quad.png")

    assert [call[2] for call in color_classifier.calls] == [GREEN, GRAY, YELLOW, BLUE]


def test_dominant_category_of_image(taxonomy, color_classifier):
    pipeline = AnalysisPipeline(color_classifier, settings_for(taxonomy))
    result = pipeline.analyze_image(quadrant_image([GREEN, BLUE, GRAY, RED]), "quad.png")

    assert [r.dominant_category for r in result.regions] == [VEG, VEG, BUILD, None]
    assert result.aggregate.dominant_category == VEG
    assert result.aggregate.dominance_percent == pytest.approx(50.0)


def test_failing_region_does_not_abort_image(taxonomy):
    classifier = ColorClassifier(failing_color=GRAY)
    pipeline = AnalysisPipeline(classifier, settings_for(taxonomy))

    with pytest.warns(UserWarning):
        result = pipeline.analyze_image(quadrant_image([GREEN, GRAY, GREEN, GREEN]), "quad.png")

    assert result.regions[1].failed
    assert result.regions[1].categories == ()
    assert result.aggregate.active_region_count == 3
    assert result.failed_region_count == 1


def test_threshold_filters_weak_predictions(taxonomy, color_classifier):
    pipeline = AnalysisPipeline(color_classifier, settings_for(taxonomy, threshold=0.65))
    result = pipeline.analyze_image(quadrant_image([GREEN, GRAY, YELLOW, BLUE]), "quad.png")

    assert [r.categories for r in result.regions] == [(VEG,), (), (SOLAR,), (VEG,)]


def test_whole_image_pass(taxonomy, color_classifier):
    pipeline = AnalysisPipeline(color_classifier, settings_for(taxonomy, whole_image=True))
    image = np.zeros((100, 100, 3), dtype=np.uint8)
    image[:] = YELLOW
    image[:50, :50] = RED

    result = pipeline.analyze_image(image, "mixed.png")

    assert len(color_classifier.calls) == 5
    assert color_classifier.calls[-1][1] == config.WHOLE_IMAGE_TOP_K
    assert result.whole_image is not None


def test_image_smaller_than_grid_is_rejected(taxonomy, color_classifier):
    pipeline = AnalysisPipeline(color_classifier, settings_for(taxonomy, grid_size=8))

    with pytest.raises(GridConfigurationError):
        pipeline.analyze_image(np.zeros((5, 50, 3), dtype=np.uint8), "tiny.png")


def test_same_predictions_give_same_result(taxonomy):
    image = quadrant_image([GREEN, GRAY, YELLOW, BLUE])
    first = AnalysisPipeline(ColorClassifier(), settings_for(taxonomy)).analyze_image(image, "a")
    second = AnalysisPipeline(ColorClassifier(), settings_for(taxonomy)).analyze_image(image, "a")

    assert first == second


# =============================================================================
# RUN OVER FILES
# =============================================================================

def test_list_images_is_sorted_and_filtered(tmp_path):
    for name in ["b.jpg", "a.PNG", "c.txt", "d.jpeg"]:
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "sub.jpg").mkdir()

    names = [p.split("/")[-1] for p in list_images(str(tmp_path))]

    assert names == ["a.PNG", "b.jpg", "d.jpeg"]


def test_load_image_converts_to_rgb(tmp_path):
    from PIL import Image

    Image.new("L", (30, 20), color=90).save(tmp_path / "gray.png")
    image = load_image(str(tmp_path / "gray.png"))

    assert image.shape == (20, 30, 3)
    assert image.dtype == np.uint8


def test_run_skips_broken_images_and_keeps_order(tmp_path, taxonomy, color_classifier):
    save_image(tmp_path / "01.png", quadrant_image([GREEN, GREEN, GREEN, GREEN], size=20))
    (tmp_path / "02.png").write_bytes(b"not an image")
    save_image(tmp_path / "03.png", np.zeros((1, 1, 3), dtype=np.uint8))
    save_image(tmp_path / "04.png", quadrant_image([GRAY, GRAY, GRAY, GRAY], size=20))

    pipeline = AnalysisPipeline(color_classifier, settings_for(taxonomy))
    report = pipeline.run(list_images(str(tmp_path)), show_progress=False)

    assert [r.image_id for r in report.results] == ["01.png", "04.png"]
    assert [(f.image_id, f.stage) for f in report.failures] == [("02.png", "load"), ("03.png", "analyze")]
    assert report.processed == 2
    assert report.failed == 2


def test_run_records_annotated_path(tmp_path, taxonomy, color_classifier):
    path = save_image(tmp_path / "a.png", quadrant_image([GREEN, GRAY, BLUE, RED], size=20))
    pipeline = AnalysisPipeline(color_classifier, settings_for(taxonomy))

    report = pipeline.run([path], annotate=lambda image, result: f"out/{result.image_id}", show_progress=False)

    assert report.results[0].annotated_path == "out/a.png"


def test_failing_annotation_skips_image(tmp_path, taxonomy, color_classifier):
    path = save_image(tmp_path / "a.png", quadrant_image([GREEN, GRAY, BLUE, RED], size=20))
    pipeline = AnalysisPipeline(color_classifier, settings_for(taxonomy))

    def broken(image, result):
        raise OSError("disk full")

    report = pipeline.run([path], annotate=broken, show_progress=False)

    assert report.results == []
    assert report.failures[0].stage == "annotate"
    assert "disk full" in report.failures[0].message
