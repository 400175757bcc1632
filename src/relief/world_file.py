"""
World files: plain text side-car files geo-referencing a raster image.

A world file holds six lines: the pixel size in x, two rotation terms, the
negative pixel size in y, and the x and y coordinates of the center of the
top-left pixel.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def world_file_path(image_path):
    """
    Derive the world file path from an image path.

    The extension becomes its first and last character followed by ``w``
    (``.tiff`` -> ``.tfw``, ``.png`` -> ``.pgw``). Extensions with one or two
    characters get ``w`` appended; a path without extension gets ``.w``.

    Args:
        image_path: Path of the raster image

    Returns:
        str: Path of the world file
    """
    root, ext = os.path.splitext(str(image_path))
    ext = ext[1:]
    if not ext:
        return root + ".w"
    if len(ext) <= 2:
        return f"{root}.{ext}w"
    return f"{root}.{ext[0]}{ext[-1]}w"


def write_world_file(path, cell_size, west, north):
    """
    Write a world file for an image without rotation.

    Args:
        path: Path of the world file
        cell_size: Size of a pixel in world units
        west: x coordinate of the center of the top-left pixel
        north: y coordinate of the center of the top-left pixel
    """
    lines = [cell_size, 0.0, 0.0, -cell_size, west, north]
    path = Path(path)
    with open(path, "w", encoding="ascii", newline="\n") as f:
        for value in lines:
            f.write(repr(float(value)) + "\n")
    logger.debug(f"Wrote world file {path}")


def write_world_file_for_grid(image_path, grid, scale=1):
    """
    Write the world file for an image rendered from a grid.

    Args:
        image_path: Path of the image; the world file path is derived from it
        grid: Grid the image was rendered from
        scale: Number of image pixels per grid cell along each axis

    Returns:
        str: Path of the written world file
    """
    pixel_size = grid.cell_size / scale
    path = world_file_path(image_path)
    write_world_file(path, pixel_size, grid.west, grid.north)
    return path
