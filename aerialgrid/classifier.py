"""
Region classifier module

Wraps the pretrained image classifier used as a black-box oracle.

- `ImageClassifier` is the capability the pipeline depends on: given a
  fixed-size RGB pixel buffer, return ranked (label, probability) pairs.
- `TorchImageClassifier` implements it with torchvision's MobileNetV2
  trained on ImageNet.
- `RegionClassifier` crops a region out of the source image, resamples it
  to the classifier input size and turns classifier failures into empty
  results so one bad region never aborts the image.
"""

import warnings
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple, runtime_checkable

import cv2
import numpy as np

import config
from aerialgrid.errors import ClassifierInitError
from aerialgrid.grid import Region

# ImageNet normalization used by all torchvision classification weights
IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)


@dataclass(frozen=True)
class Prediction:
    """One ranked classifier output: raw label and its probability."""

    label: str
    probability: float

    def __post_init__(self):
        if not isinstance(self.label, str):
            raise TypeError(f"Prediction label must be a string, got {type(self.label).__name__}")
        probability = float(self.probability)
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"Prediction probability must be in [0, 1], got {probability}")
        object.__setattr__(self, "probability", probability)


@runtime_checkable
class ImageClassifier(Protocol):
    """Protocol for the external image classifier."""

    def classify(self, pixels: np.ndarray, top_k: int) -> Sequence[Prediction]:
        """
        Classify a square RGB image.

        Args:
            pixels: uint8 array of shape (input_size, input_size, 3)
            top_k: Number of predictions to return

        Returns:
            Predictions ordered by descending probability
        """
        ...


class TorchImageClassifier:
    """
    MobileNetV2 (ImageNet weights) from torchvision.

    The model is loaded once in the constructor and only used for
    inference afterwards.
    """

    def __init__(self, device: Optional[str] = None):
        """
        Load the model.

        Args:
            device: Torch device string ("cpu", "cuda", ...). Defaults to
                    CUDA when available, CPU otherwise.

        Raises:
            ClassifierInitError if torch/torchvision are missing or the
            weights cannot be loaded
        """
        try:
            import torch
            from torchvision import models

            weights = models.MobileNet_V2_Weights.DEFAULT
            model = models.mobilenet_v2(weights=weights)
        except Exception as e:
            raise ClassifierInitError(f"Failed to load MobileNetV2: {e}") from e

        if device is None:
            device = "cuda" if torch.cuda.is_available() else "cpu"

        self._torch = torch
        self.device = torch.device(device)
        self.model = model.to(self.device).eval()
        self.labels = list(weights.meta["categories"])
        self.mean = torch.tensor(IMAGENET_MEAN, device=self.device).view(3, 1, 1)
        self.std = torch.tensor(IMAGENET_STD, device=self.device).view(3, 1, 1)

    def classify(self, pixels: np.ndarray, top_k: int) -> Tuple[Prediction, ...]:
        torch = self._torch

        with torch.no_grad():
            tensor = torch.from_numpy(np.ascontiguousarray(pixels)).to(self.device)
            tensor = tensor.permute(2, 0, 1).float().div(255.0)
            tensor = ((tensor - self.mean) / self.std).unsqueeze(0)

            logits = self.model(tensor)
            probs = torch.softmax(logits[0], dim=0)
            values, indices = torch.topk(probs, k=min(top_k, probs.numel()))

            predictions = tuple(
                Prediction(self.labels[idx], min(max(value, 0.0), 1.0))
                for value, idx in zip(values.tolist(), indices.tolist())
            )

        # Release per-call tensors before the next region
        del tensor, logits, probs, values, indices
        return predictions


@dataclass(frozen=True)
class ClassificationOutcome:
    """Predictions for one region, or the error that prevented them."""

    predictions: Tuple[Prediction, ...] = ()
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def confidence(self) -> float:
        """Probability of the top prediction (0.0 if there is none)."""
        return self.predictions[0].probability if self.predictions else 0.0


def _checked(item) -> Prediction:
    if not isinstance(item, Prediction):
        raise TypeError(f"Classifier returned {type(item).__name__}, expected Prediction")
    return item


class RegionClassifier:
    """
    Runs the image classifier on individual regions of a source image.
    """

    def __init__(
        self,
        classifier: ImageClassifier,
        top_k: int,
        input_size: int = None
    ):
        """
        Args:
            classifier: Object implementing ImageClassifier
            top_k: Predictions requested per region
            input_size: Side length of the square classifier input
                        (default from config)
        """
        if input_size is None:
            input_size = config.CLASSIFIER_INPUT_SIZE

        self.classifier = classifier
        self.top_k = top_k
        self.input_size = input_size

    @staticmethod
    def crop_region(image: np.ndarray, region: Region) -> np.ndarray:
        """Cut the region's rectangle out of an (H, W, 3) image."""
        return image[region.y:region.y + region.height, region.x:region.x + region.width]

    def resample(self, pixels: np.ndarray) -> np.ndarray:
        """
        Resize pixels to input_size x input_size.

        The aspect ratio is not preserved: non-square regions are stretched.
        """
        height, width = pixels.shape[:2]
        size = self.input_size
        interpolation = cv2.INTER_AREA if width > size or height > size else cv2.INTER_LINEAR
        resized = cv2.resize(np.ascontiguousarray(pixels), (size, size), interpolation=interpolation)
        return resized

    def _run(self, pixels: np.ndarray, top_k: int, name: str) -> ClassificationOutcome:
        try:
            raw = self.classifier.classify(pixels, top_k)
            predictions = tuple(_checked(p) for p in raw)
        except Exception as e:
            warnings.warn(f"Classification failed for {name}: {e}")
            return ClassificationOutcome(error=f"{type(e).__name__}: {e}")
        return ClassificationOutcome(predictions=predictions)

    def classify_region(self, image: np.ndarray, region: Region) -> ClassificationOutcome:
        """
        Classify one region of an image.

        Args:
            image: Source RGB image (H, W, 3)
            region: Region to classify

        Returns:
            ClassificationOutcome. If the classifier raises, the outcome has
            no predictions and carries the error message instead.
        """
        pixels = self.resample(self.crop_region(image, region))
        return self._run(pixels, self.top_k, f"region {region.id}")

    def classify_image(self, image: np.ndarray, top_k: int = None) -> ClassificationOutcome:
        """Classify the whole image, resampled to the classifier input size."""
        if top_k is None:
            top_k = config.WHOLE_IMAGE_TOP_K
        return self._run(self.resample(image), top_k, "whole image")
