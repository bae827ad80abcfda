"""
Configuration for the Aerial Region Classifier

To point the analysis at a different image folder, create a config_local.py
file next to this one:
    INPUT_DIR = "/path/to/aerial/images"
"""

# =============================================================================
# INPUT / OUTPUT
# =============================================================================

# Try to load a local input directory from config_local.py (gitignored)
try:
    from config_local import INPUT_DIR
except ImportError:
    INPUT_DIR = "images/raw"

OUTPUT_DIR = "output"

# File extensions picked up from INPUT_DIR (case-insensitive)
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")

RESULTS_CSV_NAME = "region_results.csv"
SUMMARY_FIGURE_NAME = "run_summary.png"

# =============================================================================
# CLASSIFIER SETTINGS
# =============================================================================

# ImageNet models expect a square 224x224 input. Every region is resampled
# to this size regardless of its aspect ratio.
CLASSIFIER_INPUT_SIZE = 224

# Number of predictions requested for the optional whole-image pass
WHOLE_IMAGE_TOP_K = 15

# =============================================================================
# TAXONOMY
# =============================================================================

# Keywords are matched as lower-case substrings of the classifier label,
# so "leaf" also matches "leaflet" and "church" matches "church building".
VEGETATION_KEYWORDS = (
    "broccoli", "artichoke", "cauliflower", "corn", "acorn", "leaf",
    "maze", "alp", "cliff", "lakeside", "volcano", "mountain", "hill",
    "forest", "tree", "plant", "grass", "jungle", "field", "garden",
    "park", "nature", "coral reef",
)

SOLAR_KEYWORDS = (
    "solar dish", "spotlight", "radar", "satellite dish", "radio telescope",
    "antenna", "panel", "dish", "solar", "technical", "machinery",
    "equipment", "installation", "technology", "crane",
)

BUILDING_KEYWORDS = (
    "castle", "palace", "monastery", "church", "viaduct",
    "suspension bridge", "steel arch bridge", "container ship",
    "parking lot", "residential area", "street sign", "tile roof",
    "jigsaw puzzle", "envelope", "honeycomb", "roof", "building", "house",
    "structure", "architecture", "urban", "city", "construction",
    "infrastructure", "bridge", "road", "birdhouse",
)

# Three-category taxonomy (name, hex color, icon, keywords)
CATEGORY_DEFINITIONS = (
    ("Vegetation", "#228B22", "🌳", VEGETATION_KEYWORDS),
    ("Solar/Technical", "#FFD700", "☀️", SOLAR_KEYWORDS),
    ("Buildings/Infrastructure", "#DC143C", "🏢", BUILDING_KEYWORDS),
)

# Two-category taxonomy used by the 8x8 preset: trees vs. built surfaces
TWO_CATEGORY_DEFINITIONS = (
    ("Vegetation", "#228B22", "🌳", VEGETATION_KEYWORDS + (
        "moss", "fern", "bush", "shrub", "meadow", "woodland", "grove",
    )),
    ("Buildings/Concrete", "#DC143C", "🏢", BUILDING_KEYWORDS + (
        "concrete", "asphalt", "pavement", "sidewalk", "wall", "tower",
        "skyscraper", "factory", "warehouse", "stadium", "airport",
    )),
)

# =============================================================================
# PRESETS
# =============================================================================

# grid_size: regions per side (grid_size x grid_size regions)
# threshold: exclusive minimum probability for a prediction to count
#            (lower = more sensitive, noisier)
# top_k:     predictions requested per region
# bonus_factor: score bonus per matched keyword
# track_dominance: resolve a dominant category per region and per image
# whole_image: also classify the full image and merge its categories
PRESETS = {
    "simple": {
        "grid_size": 2,
        "threshold": 0.03,
        "top_k": 10,
        "bonus_factor": 0.25,
        "track_dominance": False,
        "whole_image": True,
        "taxonomy": "three",
    },
    "multi": {
        "grid_size": 3,
        "threshold": 0.05,
        "top_k": 5,
        "bonus_factor": 0.2,
        "track_dominance": False,
        "whole_image": False,
        "taxonomy": "three",
    },
    "detail": {
        "grid_size": 4,
        "threshold": 0.02,
        "top_k": 8,
        "bonus_factor": 0.2,
        "track_dominance": False,
        "whole_image": False,
        "taxonomy": "three",
    },
    "ultra": {
        "grid_size": 8,
        "threshold": 0.01,
        "top_k": 10,
        "bonus_factor": 0.3,
        "track_dominance": True,
        "whole_image": False,
        "taxonomy": "two",
    },
}

DEFAULT_PRESET = "detail"

# =============================================================================
# OUTPUT SETTINGS
# =============================================================================

# Overlay fill opacity shrinks as regions get smaller so fine grids stay readable
OVERLAY_ALPHA_COARSE = 0.25   # grids up to 3x3
OVERLAY_ALPHA_FINE = 0.15     # 4x4 and 5x5
OVERLAY_ALPHA_ULTRA = 0.08    # 6x6 and finer

GRID_LINE_COLOR = (255, 255, 255)   # RGB
LEGEND_BACKGROUND = (0, 0, 0)       # RGB
