"""Image Transform: crop, rotate, adjust, resize and re-encode raster images."""

__version__ = "0.1.0"
