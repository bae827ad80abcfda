import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
from PIL import Image

from aerialgrid.classifier import Prediction
from aerialgrid.taxonomy import Category, Taxonomy

GREEN = (20, 180, 40)
GRAY = (128, 128, 128)
YELLOW = (250, 210, 0)
BLUE = (0, 0, 255)
RED = (255, 0, 0)

# Predictions returned for a region, keyed by its (solid) color
COLOR_PREDICTIONS = {
    GREEN: [Prediction("tree", 0.7), Prediction("grass", 0.2)],
    GRAY: [Prediction("tile roof", 0.6), Prediction("solar panel", 0.1)],
    YELLOW: [Prediction("solar dish", 0.8)],
    BLUE: [Prediction("lakeside", 0.9)],
}


class ColorClassifier:
    """Returns fixture predictions based on the mean color of the input."""

    def __init__(self, failing_color=None):
        self.failing_color = failing_color
        self.calls = []

    def classify(self, pixels, top_k):
        color = tuple(int(round(c)) for c in pixels.reshape(-1, 3).mean(axis=0))
        self.calls.append((pixels.shape, top_k, color))
        if color == self.failing_color:
            raise RuntimeError("model exploded")
        return COLOR_PREDICTIONS.get(color, [Prediction("jellyfish", 0.95)])[:top_k]


class ScriptedClassifier:
    """Returns the given prediction lists one call after another."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0

    def classify(self, pixels, top_k):
        response = self.responses[self.calls]
        self.calls += 1
        if isinstance(response, Exception):
            raise response
        return response


def quadrant_image(colors, size=200):
    """Build a (2*size, 2*size) image whose quadrants have solid colors (row-major)."""
    image = np.zeros((2 * size, 2 * size, 3), dtype=np.uint8)
    for i, color in enumerate(colors):
        row, col = divmod(i, 2)
        image[row * size:(row + 1) * size, col * size:(col + 1) * size] = color
    return image


def save_image(path, array):
    Image.fromarray(array).save(path)
    return str(path)


@pytest.fixture
def taxonomy():
    return Taxonomy([
        Category("Vegetation", ("tree", "leaf", "grass", "lakeside"), "#228B22", "V"),
        Category("Solar/Technical", ("solar", "panel", "dish"), "#FFD700", "S"),
        Category("Buildings/Infrastructure", ("church", "building", "roof"), "#DC143C", "B"),
    ])


@pytest.fixture
def color_classifier():
    return ColorClassifier()
