"""
Keyword scoring module

Maps ranked classifier predictions for one region onto taxonomy categories.

Logic:
- A prediction matches a category when its lower-cased label contains at
  least one of the category's keywords (substring, not token match)
- Only predictions with probability strictly above the threshold count
- Each counting prediction adds probability * (1 + matches * bonus_factor)
  to the category score
- A region may end up in several categories at once (multi-label)
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from aerialgrid.classifier import Prediction
from aerialgrid.taxonomy import Category, Taxonomy


@dataclass(frozen=True)
class RegionCategorization:
    """
    Categories detected in one region.

    Attributes:
        categories: Detected category names in taxonomy order
        scores: Accumulated score per detected category (not normalized)
        dominant_category: Category of the single strongest
                           (prediction, category) contribution, or None
    """

    categories: Tuple[str, ...] = ()
    scores: Dict[str, float] = field(default_factory=dict)
    dominant_category: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return len(self.categories) > 0


def match_keywords(label: str, category: Category) -> Tuple[str, ...]:
    """
    Find the category keywords contained in a classifier label.

    Args:
        label: Raw classifier label (any case)
        category: Category whose keywords are checked

    Returns:
        Matched keywords, in the category's keyword order
    """
    label = label.lower()
    return tuple(k for k in category.keywords if k in label)


def score_predictions(
    predictions: Sequence[Prediction],
    taxonomy: Taxonomy,
    threshold: float,
    bonus_factor: float,
    track_dominant: bool = True
) -> RegionCategorization:
    """
    Categorize one region from its ranked predictions.

    Args:
        predictions: Classifier output, highest probability first
        taxonomy: Categories to match against
        threshold: Exclusive minimum probability
        bonus_factor: Score bonus per matched keyword
        track_dominant: Resolve the dominant category

    Returns:
        RegionCategorization
    """
    detected = set()
    scores: Dict[str, float] = {}
    dominant = None
    best_contribution = 0.0

    for prediction in predictions:
        if not prediction.probability > threshold:
            continue

        for category in taxonomy:
            matched = match_keywords(prediction.label, category)
            if not matched:
                continue

            contribution = prediction.probability * (1 + len(matched) * bonus_factor)
            detected.add(category.name)
            scores[category.name] = scores.get(category.name, 0.0) + contribution

            # Strictly greater: the earlier (higher ranked) contribution wins ties
            if contribution > best_contribution:
                best_contribution = contribution
                dominant = category.name

    return RegionCategorization(
        categories=taxonomy.ordered(detected),
        scores={name: scores[name] for name in taxonomy.ordered(scores)},
        dominant_category=dominant if track_dominant else None,
    )
