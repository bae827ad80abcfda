"""
Aerial Region Classifier

Splits aerial images into a grid of regions, classifies each region with a
pretrained ImageNet model and maps the predicted labels onto a small fixed
taxonomy (vegetation, solar/technical installations, buildings).
"""

__version__ = "0.1.0"
