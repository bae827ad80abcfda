"""
Region grid module

Splits an image extent into a grid_size x grid_size set of rectangular
regions. Regions never overlap and always cover every pixel: the last
row and column absorb whatever is left over from integer division.
"""

from dataclasses import dataclass
from typing import List, Tuple

from aerialgrid.errors import GridConfigurationError


@dataclass(frozen=True)
class Region:
    """
    One rectangular tile of an image, in source-image pixel coordinates.

    Attributes:
        id: Sortable name, e.g. "R01C03"
        x, y: Top-left corner
        width, height: Size in pixels
        row, col: 0-based grid position
        grid_size: Number of regions per side of the grid this tile belongs to
    """

    id: str
    x: int
    y: int
    width: int
    height: int
    row: int
    col: int
    grid_size: int

    @property
    def rect(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    @property
    def position_name(self) -> str:
        return position_name(self.row, self.col, self.grid_size)


def validate_grid(width: int, height: int, grid_size: int):
    """
    Check that a grid of this size produces non-empty regions for the image.

    Raises:
        GridConfigurationError if grid_size < 1 or the image is smaller than
        grid_size pixels in either direction
    """
    if grid_size < 1:
        raise GridConfigurationError(f"Grid size must be at least 1, got {grid_size}")
    if width < grid_size or height < grid_size:
        raise GridConfigurationError(
            f"Image of {width}x{height} pixels is too small for a "
            f"{grid_size}x{grid_size} grid"
        )


def region_id(row: int, col: int, grid_size: int) -> str:
    """
    Build the region name for a 0-based grid position.

    Row and column are 1-based in the name and zero-padded to at least two
    digits so ids sort correctly for every supported grid size.
    """
    pad = max(2, len(str(grid_size)))
    return f"R{row + 1:0{pad}d}C{col + 1:0{pad}d}"


def build_region_grid(width: int, height: int, grid_size: int) -> List[Region]:
    """
    Partition an image into grid_size x grid_size regions (row-major order).

    Args:
        width: Image width in pixels
        height: Image height in pixels
        grid_size: Regions per side

    Returns:
        List of Region objects, first row left to right, then the next row
    """
    validate_grid(width, height, grid_size)

    region_width = width // grid_size
    region_height = height // grid_size

    regions = []
    for row in range(grid_size):
        for col in range(grid_size):
            x = col * region_width
            y = row * region_height
            w = width - x if col == grid_size - 1 else region_width
            h = height - y if row == grid_size - 1 else region_height
            regions.append(Region(
                id=region_id(row, col, grid_size),
                x=x,
                y=y,
                width=w,
                height=h,
                row=row,
                col=col,
                grid_size=grid_size,
            ))

    return regions


def _axis_name(index: int, grid_size: int, first: str, last: str) -> str:
    if index == 0:
        return first
    if index == grid_size - 1:
        return last
    if grid_size % 2 == 1 and index == grid_size // 2:
        return "middle"
    if index < grid_size / 2:
        return f"{first}-middle"
    return f"{last}-middle"


def position_name(row: int, col: int, grid_size: int) -> str:
    """
    Human-readable position of a grid cell, e.g. "top-left" or "bottom-middle-right".

    A 1x1 grid has a single "center" region.
    """
    if grid_size == 1:
        return "center"

    vertical = _axis_name(row, grid_size, "top", "bottom")
    horizontal = _axis_name(col, grid_size, "left", "right")

    if vertical == horizontal == "middle":
        return "center"
    return f"{vertical}-{horizontal}"
