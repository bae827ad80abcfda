"""
Analysis pipeline module

Runs the per-image pipeline

    load -> grid -> (classify, score) per region -> aggregate -> record

over a sorted list of images. Regions are processed one at a time in
row-major order and images one after another; the classifier is shared
and never called concurrently.

A failing region yields no categories, a failing image is recorded in the
run report and skipped. Only configuration errors and classifier loading
errors stop a run.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image
from tqdm import tqdm

import config
from aerialgrid.aggregator import aggregate_regions
from aerialgrid.classifier import ImageClassifier, RegionClassifier
from aerialgrid.errors import ConfigurationError
from aerialgrid.grid import build_region_grid, validate_grid
from aerialgrid.results import AnalysisResult, ImageFailure, RunReport, build_result
from aerialgrid.scoring import score_predictions
from aerialgrid.taxonomy import Taxonomy, default_taxonomy

# Called with (image, result); returns the path of the saved overlay
Annotator = Callable[[np.ndarray, AnalysisResult], str]


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


@dataclass(frozen=True)
class PipelineConfig:
    """
    Settings for one pipeline run. Validated on construction.

    Attributes:
        grid_size: Regions per side
        threshold: Exclusive minimum prediction probability, in [0, 1)
        top_k: Predictions requested per region
        bonus_factor: Score bonus per matched keyword
        track_dominance: Resolve dominant category per region and image
        whole_image: Also classify the full image and merge its categories
        whole_image_top_k: Predictions requested for the full image
        taxonomy: Target categories
        input_size: Classifier input side length in pixels
        name: Preset name (for reporting)
    """

    grid_size: int = 4
    threshold: float = 0.02
    top_k: int = 8
    bonus_factor: float = 0.2
    track_dominance: bool = False
    whole_image: bool = False
    whole_image_top_k: int = config.WHOLE_IMAGE_TOP_K
    taxonomy: Taxonomy = field(default_factory=default_taxonomy)
    input_size: int = config.CLASSIFIER_INPUT_SIZE
    name: str = "custom"

    def __post_init__(self):
        for name in ("grid_size", "top_k", "whole_image_top_k", "input_size"):
            value = getattr(self, name)
            if not _is_count(value):
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if not 0.0 <= self.threshold < 1.0:
            raise ConfigurationError(f"threshold must be in [0, 1), got {self.threshold}")
        if self.bonus_factor < 0:
            raise ConfigurationError(f"bonus_factor must not be negative, got {self.bonus_factor}")
        if not isinstance(self.taxonomy, Taxonomy):
            raise ConfigurationError("taxonomy must be a Taxonomy instance")

    @classmethod
    def from_preset(cls, name: str, **overrides) -> "PipelineConfig":
        """
        Build a config from one of the presets in config.PRESETS.

        Args:
            name: Preset name ("simple", "multi", "detail", "ultra")
            **overrides: Fields to override; None values are ignored

        Returns:
            PipelineConfig
        """
        if name not in config.PRESETS:
            raise ConfigurationError(
                f"Unknown preset '{name}' (available: {', '.join(sorted(config.PRESETS))})"
            )

        settings = dict(config.PRESETS[name])
        settings["taxonomy"] = default_taxonomy(settings["taxonomy"])
        settings["name"] = name
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**settings)

    def describe(self) -> str:
        return (
            f"{self.name}: {self.grid_size}x{self.grid_size} grid, threshold {self.threshold}, "
            f"top-{self.top_k}, bonus {self.bonus_factor}"
            f"{', dominance' if self.track_dominance else ''}"
            f"{', whole image' if self.whole_image else ''}"
        )


# =============================================================================
# IMAGE SOURCE
# =============================================================================

def list_images(directory: str, extensions: Sequence[str] = None) -> List[str]:
    """
    List image files in a directory, sorted by file name.

    Args:
        directory: Folder to scan (not recursive)
        extensions: Accepted extensions, case-insensitive (default from config)

    Returns:
        Sorted list of file paths
    """
    if extensions is None:
        extensions = config.IMAGE_EXTENSIONS
    extensions = tuple(e.lower() for e in extensions)

    names = sorted(
        name for name in os.listdir(directory)
        if name.lower().endswith(extensions) and os.path.isfile(os.path.join(directory, name))
    )
    return [os.path.join(directory, name) for name in names]


def load_image(path: str) -> np.ndarray:
    """Load an image as an RGB uint8 array of shape (H, W, 3)."""
    with Image.open(path) as img:
        return np.array(img.convert("RGB"))


# =============================================================================
# PIPELINE
# =============================================================================

class AnalysisPipeline:
    """
    Region-based multi-label analysis of aerial images.

    The classifier is injected so the scoring and aggregation can be run
    against fixture classifiers without loading a real model.
    """

    def __init__(self, classifier: ImageClassifier, settings: PipelineConfig = None):
        """
        Args:
            classifier: Loaded classifier, reused for every region of every image
            settings: Pipeline settings (default: config.DEFAULT_PRESET)
        """
        if settings is None:
            settings = PipelineConfig.from_preset(config.DEFAULT_PRESET)

        self.settings = settings
        self.taxonomy = settings.taxonomy
        self.region_classifier = RegionClassifier(
            classifier, top_k=settings.top_k, input_size=settings.input_size
        )

    def analyze_image(
        self,
        image: np.ndarray,
        image_id: str,
        image_path: str = "",
        show_progress: bool = False
    ) -> AnalysisResult:
        """
        Analyze one image that is already loaded.

        Args:
            image: RGB image (H, W, 3)
            image_id: Identifier used in reports (usually the file name)
            image_path: Source path, kept in the result
            show_progress: Show a progress bar over regions

        Returns:
            AnalysisResult

        Raises:
            GridConfigurationError if the image is smaller than the grid
        """
        settings = self.settings
        height, width = image.shape[:2]
        regions = build_region_grid(width, height, settings.grid_size)

        outcomes = []
        categorizations = []
        iterator = tqdm(regions, desc=f"Regions of {image_id}", leave=False) if show_progress else regions

        for region in iterator:
            outcome = self.region_classifier.classify_region(image, region)
            outcomes.append(outcome)
            categorizations.append(score_predictions(
                outcome.predictions,
                self.taxonomy,
                threshold=settings.threshold,
                bonus_factor=settings.bonus_factor,
                track_dominant=settings.track_dominance,
            ))

        aggregate = aggregate_regions(
            categorizations, self.taxonomy, track_dominance=settings.track_dominance
        )

        whole_image = None
        if settings.whole_image:
            outcome = self.region_classifier.classify_image(image, top_k=settings.whole_image_top_k)
            whole_image = score_predictions(
                outcome.predictions,
                self.taxonomy,
                threshold=settings.threshold,
                bonus_factor=settings.bonus_factor,
                track_dominant=False,
            )

        return build_result(
            image_id=image_id,
            image_path=image_path,
            image_size=(width, height),
            grid_size=settings.grid_size,
            regions=regions,
            outcomes=outcomes,
            categorizations=categorizations,
            aggregate=aggregate,
            taxonomy=self.taxonomy,
            whole_image=whole_image,
        )

    def _process(
        self,
        path: str,
        annotate: Optional[Annotator]
    ) -> Tuple[Optional[AnalysisResult], Optional[ImageFailure]]:
        image_id = os.path.basename(path)

        try:
            image = load_image(path)
        except Exception as e:
            return None, ImageFailure(image_id, "load", f"{type(e).__name__}: {e}")

        try:
            height, width = image.shape[:2]
            validate_grid(width, height, self.settings.grid_size)
            result = self.analyze_image(image, image_id, image_path=path)
        except Exception as e:
            return None, ImageFailure(image_id, "analyze", f"{type(e).__name__}: {e}")

        if annotate is not None:
            try:
                result = replace(result, annotated_path=annotate(image, result))
            except Exception as e:
                return None, ImageFailure(image_id, "annotate", f"{type(e).__name__}: {e}")

        return result, None

    def run(
        self,
        paths: Iterable[str],
        annotate: Optional[Annotator] = None,
        show_progress: bool = True
    ) -> RunReport:
        """
        Analyze images one after another.

        Args:
            paths: Image paths, processed in the given order
            annotate: Optional callback that renders and saves an overlay
            show_progress: Show a progress bar over images

        Returns:
            RunReport with the results of all successful images and one
            ImageFailure per skipped image
        """
        paths = list(paths)
        report = RunReport()
        iterator = tqdm(paths, desc="Analyzing images") if show_progress else paths

        for path in iterator:
            result, failure = self._process(path, annotate)

            if failure is not None:
                report.failures.append(failure)
                message = f"❌ {failure.image_id} ({failure.stage}): {failure.message}"
                if show_progress:
                    tqdm.write(message)
                else:
                    print(message)
                continue

            report.results.append(result)

        return report
