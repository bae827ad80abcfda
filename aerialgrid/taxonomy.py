"""
Taxonomy module

Defines the fixed set of target categories and the keyword lists used to
map raw ImageNet labels onto them.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Sequence, Tuple

import config
from aerialgrid.errors import ConfigurationError

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


@dataclass(frozen=True)
class Category:
    """
    One entry of the taxonomy.

    Attributes:
        name: Display name, also used as the lookup key
        keywords: Lower-case substrings searched for in classifier labels
        color: Hex color ("#RRGGBB") used for overlays and legends
        icon: Short marker shown in console output and legends
    """

    name: str
    keywords: Tuple[str, ...]
    color: str = "#808080"
    icon: str = ""

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ConfigurationError("Category name must not be empty")
        keywords = tuple(k.strip().lower() for k in self.keywords if k and k.strip())
        if not keywords:
            raise ConfigurationError(f"Category '{self.name}' has no keywords and could never match")
        if not HEX_COLOR.match(self.color):
            raise ConfigurationError(f"Category '{self.name}' has invalid color {self.color!r}")
        object.__setattr__(self, "keywords", keywords)

    @property
    def slug(self) -> str:
        """Column-friendly identifier, e.g. 'Solar/Technical' -> 'solar_technical'."""
        return re.sub(r"[^0-9a-z]+", "_", self.name.lower()).strip("_")

    @property
    def short_name(self) -> str:
        """First part of the name, e.g. 'Buildings/Infrastructure' -> 'Buildings'."""
        return self.name.split("/")[0]

    @property
    def rgb(self) -> Tuple[int, int, int]:
        """Color as an RGB tuple of ints."""
        return tuple(int(self.color[i:i + 2], 16) for i in (1, 3, 5))


class Taxonomy:
    """
    Ordered, immutable collection of categories.

    Iteration and `names` follow declaration order, which is also the
    order used for CSV columns and legends.
    """

    def __init__(self, categories: Iterable[Category]):
        categories = tuple(categories)
        if not categories:
            raise ConfigurationError("Taxonomy needs at least one category")

        by_name: Dict[str, Category] = {}
        for category in categories:
            if category.name in by_name:
                raise ConfigurationError(f"Duplicate category name '{category.name}'")
            by_name[category.name] = category

        self._categories = categories
        self._by_name = by_name

    def __iter__(self) -> Iterator[Category]:
        return iter(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __getitem__(self, name: str) -> Category:
        return self._by_name[name]

    def __eq__(self, other) -> bool:
        return isinstance(other, Taxonomy) and self._categories == other._categories

    def __hash__(self) -> int:
        return hash(self._categories)

    def __repr__(self) -> str:
        return f"Taxonomy({', '.join(self.names)})"

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self._categories)

    def ordered(self, names: Iterable[str]) -> Tuple[str, ...]:
        """Return the given category names sorted into taxonomy order."""
        wanted = set(names)
        return tuple(n for n in self.names if n in wanted)


def taxonomy_from_definitions(definitions: Sequence[tuple]) -> Taxonomy:
    """
    Build a taxonomy from (name, color, icon, keywords) tuples as used in config.py.
    """
    return Taxonomy(
        Category(name=name, keywords=tuple(keywords), color=color, icon=icon)
        for name, color, icon, keywords in definitions
    )


def default_taxonomy(kind: str = "three") -> Taxonomy:
    """
    Get one of the built-in taxonomies.

    Args:
        kind: "three" (vegetation / solar / buildings) or
              "two" (vegetation / buildings and concrete)

    Returns:
        Taxonomy instance
    """
    if kind == "three":
        return taxonomy_from_definitions(config.CATEGORY_DEFINITIONS)
    if kind == "two":
        return taxonomy_from_definitions(config.TWO_CATEGORY_DEFINITIONS)
    raise ConfigurationError(f"Unknown taxonomy '{kind}' (expected 'two' or 'three')")
