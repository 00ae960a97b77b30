"""Flat coordinate arrays to polygon rings.

Rows store one ring as a flat interleaved ``[x0, y0, x1, y1, ...]`` list.
The ring is not closed explicitly and no topology checks are made.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

_logger = logging.getLogger(__name__)


def coordinates_to_ring(coordinates: Sequence[float]) -> list[list[float]]:
    """Pair up a flat coordinate sequence into ``[[x, y], ...]`` points.

    An odd-length input drops its trailing unpaired value without raising.
    """
    usable = len(coordinates) - (len(coordinates) % 2)
    if usable != len(coordinates):
        _logger.debug(
            "Dropping unpaired trailing coordinate (length=%d, value=%r)",
            len(coordinates),
            coordinates[-1],
        )
    return [[coordinates[i], coordinates[i + 1]] for i in range(0, usable, 2)]


def transform_coordinates(coordinates: Sequence[float]) -> list[list[list[float]]]:
    """Return GeoJSON polygon coordinates: the ring as the sole outer ring."""
    return [coordinates_to_ring(coordinates)]
