"""Parameter derivation and post-processing steps of the marker detection pipeline."""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from arucokit.geometry import perimeter

_DEFAULT_SUBDIVISIONS = 7
_REFERENCE_WIDTH = 1920.0


def min_marker_size_pix(min_size: float, min_size_pix: int, image_size: Sequence[int]) -> int:
    """Minimum side in pixels of a marker in an image of ``(width, height)``.

    ``min_size`` is relative to the largest image dimension and
    ``min_size_pix`` is absolute; -1 disables either. With both disabled the
    result is 0. When ``min_size_pix`` is set, the smaller value is taken.
    """
    width, height = (int(v) for v in image_size)
    if min_size == -1 and min_size_pix == -1:
        return 0
    max_dim = max(width, height)
    size = 0
    if min_size != -1:
        size = int(np.float32(min_size) * np.float32(max_dim))
    if min_size_pix != -1:
        size = min(int(min_size_pix), size)
    return size


def adaptive_window_sizes(window_size: int, window_range: int, image_width: int) -> list[int]:
    """Odd window sizes of the adaptive thresholds to run on an image.

    A ``window_size`` of -1 derives it from the image width. Sizes go from
    ``window_size - 2*window_range`` (at least 3) to ``window_size +
    2*window_range`` in steps of 2.
    """
    size = int(window_size)
    if size == -1:
        size = max(3, int(15 * float(image_width) / _REFERENCE_WIDTH))
    if size % 2 == 0:
        size += 1
    start = int(max(3.0, size - 2.0 * window_range))
    stop = size + 2 * int(window_range)
    return list(range(start, stop + 1, 2))


def pyramid_sizes(image_size: Sequence[int], min_size: int, factor) -> list[tuple[int, int]]:
    """Sizes ``(width, height)`` of the image pyramid, starting with the image itself.

    Levels are added, each ``factor`` times smaller, while the width of the
    last one is above ``min_size``.
    """
    if factor <= 1:
        raise ValueError(f"the pyramid factor must be greater than 1, got {factor}")
    width, height = (int(v) for v in image_size)
    sizes = [(width, height)]
    while width > min_size:
        width = int(width / factor)
        height = int(height / factor)
        sizes.append((width, height))
    return sizes


def marker_warp_size(best_input_size: int, n_subdivisions: int, warp_pix_size: int) -> int:
    """Side of the canonical patch a candidate is warped to before labelling."""
    if best_input_size != -1:
        return int(best_input_size)
    ndiv = _DEFAULT_SUBDIVISIONS if n_subdivisions == -1 else int(n_subdivisions)
    return int(warp_pix_size) * ndiv


def _corners(marker) -> np.ndarray:
    corners = getattr(marker, "corners", marker)
    return np.asarray(corners, dtype=float).reshape(-1, 2)


def _info(marker) -> str:
    return getattr(marker, "dict_info", "")


def remove_duplicate_markers(markers: Iterable) -> list:
    """Sorts markers by id and drops repeated detections of the same marker.

    Markers have an ``id``, ``corners`` (or are a sequence of corners) and
    optionally a ``dict_info``. Of two markers with the same id and
    dictionary information, the one with the smaller perimeter is dropped.
    """
    items = sorted(markers, key=lambda m: int(m.id))
    to_remove = [False] * len(items)
    for i in range(len(items) - 1):
        for j in range(i + 1, len(items)):
            if to_remove[i]:
                break
            a, b = items[i], items[j]
            if int(a.id) == int(b.id) and _info(a) == _info(b):
                if perimeter(_corners(a)) < perimeter(_corners(b)):
                    to_remove[i] = True
                else:
                    to_remove[j] = True
    return [m for m, removed in zip(items, to_remove) if not removed]


def _direction(corners: np.ndarray) -> np.ndarray:
    d = corners[1] - corners[0]
    norm = float(np.linalg.norm(d))
    if norm == 0.0:
        raise ValueError("the first two corners coincide")
    return d / norm


def best_rotation(previous, corners) -> tuple[int, np.ndarray]:
    """Rotates ``corners`` to best match the orientation of ``previous``.

    Returns how many positions the corners were rotated to the left and the
    rotated corners, chosen so that the first side points most nearly along
    the first side of ``previous``.
    """
    prev = np.asarray(previous, dtype=float).reshape(-1, 2)
    cand = np.asarray(corners, dtype=float).reshape(-1, 2)
    if len(prev) < 2 or len(cand) != 4:
        raise ValueError("best_rotation needs a previous marker and four corners")
    reference = _direction(prev)
    best_r, best_err = -1, -1.0
    for r in range(4):
        err = float(reference @ _direction(np.roll(cand, -r, axis=0)))
        if err > best_err:
            best_r, best_err = r, err
    if best_r == -1:
        raise ValueError("no rotation matches the previous marker")
    return best_r, np.roll(cand, -best_r, axis=0)