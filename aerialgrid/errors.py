"""
Exception types raised by the analysis pipeline.
"""


class AerialGridError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(AerialGridError, ValueError):
    """Invalid taxonomy or pipeline settings, detected before any image is processed."""


class GridConfigurationError(ConfigurationError):
    """Grid size does not fit the image (would produce empty regions)."""


class ClassifierInitError(AerialGridError, RuntimeError):
    """The image classifier could not be loaded. Fatal for the whole run."""
