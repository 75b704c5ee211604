"""Keypoint classification, match filtering and Otsu thresholding helpers."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional

import numpy as np

_MIN_CONTRAST = 25


@dataclass
class KeyPoint:
    """An image location with a class label (-1 when not yet classified)."""

    x: float
    y: float
    response: float = 0.0
    class_id: int = -1


@dataclass
class Match:
    """A correspondence between a query element and a train element."""

    query_idx: int
    train_idx: int
    distance: float


def _check_grey(image) -> np.ndarray:
    img = np.asarray(image)
    if img.dtype != np.uint8 or img.ndim != 2:
        raise ValueError("input image must be a single channel 8-bit image")
    return img


def _count_regions(thresholded: np.ndarray) -> int:
    """Labels connected regions in raster order and returns the region count estimate."""
    rows, cols = thresholded.shape
    labels = np.zeros((rows, cols), dtype=np.int64)
    new_label = 1
    unions: dict[int, int] = {}
    for y in range(rows):
        for x in range(cols):
            reg = thresholded[y, x]
            left = int(labels[y, x - 1]) if x > 0 and thresholded[y, x - 1] == reg else 0
            top = int(labels[y - 1, x]) if y > 0 and thresholded[y - 1, x] == reg else 0
            if left == 0 and top == 0:
                labels[y, x] = new_label
                new_label = (new_label + 1) % 256
            elif left and top:
                if left < top:
                    labels[y, x] = left
                    unions[top] = left
                elif left > top:
                    labels[y, x] = top
                    unions[left] = top
                else:
                    labels[y, x] = top
            else:
                labels[y, x] = left or top
    return new_label - 1 - len(unions)


def assign_class_fast(image, keypoints: Iterable[KeyPoint], wsize: int) -> list[KeyPoint]:
    """Classifies keypoints by the binarised window of side ``2*wsize+1`` around them.

    Class 0: low contrast, or two regions with bright pixels in the majority;
    class 1: two regions with dark pixels in the majority; class 2: more than
    two regions. Keypoints whose window leaves the image, or that fall in no
    case, keep their class. Returns new keypoints in the same order.
    """
    img = _check_grey(image)
    rows, cols = img.shape
    full = wsize * 2 + 1
    result = []
    for kp in keypoints:
        cx = int(kp.x + 0.5)
        cy = int(kp.y + 0.5)
        x0, y0 = cx - wsize, cy - wsize
        if x0 < 0 or x0 + full > cols or y0 < 0 or y0 + full > rows:
            result.append(replace(kp))
            continue
        window = img[y0 : y0 + full, x0 : x0 + full].astype(np.int64)
        min_v, max_v = int(window.min()), int(window.max())
        if max_v - min_v < _MIN_CONTRAST:
            result.append(replace(kp, class_id=0))
            continue
        thres = (max_v + min_v) / 2.0
        bright = window > thres
        n_bright = int(bright.sum())
        regions = _count_regions(bright)
        class_id = kp.class_id
        if regions == 2:
            class_id = 0 if n_bright > bright.size - n_bright else 1
        elif regions > 2:
            class_id = 2
        result.append(replace(kp, class_id=class_id))
    return result


def filter_ambiguous_query(matches: Iterable[Match]) -> list[Match]:
    """Keeps, for every query index, only the match with the smallest distance.

    On equal distances the earlier match wins. When anything is removed,
    matches whose train index is -1 are dropped as well.
    """
    items = list(matches)
    if any(m.query_idx < 0 for m in items):
        raise ValueError("query indices must be non-negative")
    best: dict[int, int] = {}
    annulled: set[int] = set()
    for i, match in enumerate(items):
        q = match.query_idx
        if q not in best:
            best[q] = i
        elif items[best[q]].distance > match.distance:
            annulled.add(best[q])
            best[q] = i
        else:
            annulled.add(i)
    if not annulled:
        return items
    return [m for i, m in enumerate(items) if i not in annulled and m.train_idx != -1]


def otsu(hist) -> int:
    """Otsu threshold of a 256-bin histogram, or -1 if no split separates two classes."""
    h = np.asarray(hist, dtype=float).ravel()
    if h.size != 256:
        raise ValueError(f"the histogram must have 256 bins, got {h.size}")
    total = float(h.sum())
    if total <= 0:
        raise ValueError("the histogram is empty")
    p = h / total
    levels = np.arange(256, dtype=float)
    cum_w = np.cumsum(p)
    cum_m = np.cumsum(p * levels)
    best_t = -1
    max_var = 0.0
    for t in range(1, 256):
        w0 = float(cum_w[t - 1])
        w1 = float(cum_w[-1] - cum_w[t - 1])
        if w0 > 1e-4 and w1 > 1e-4:
            mean0 = float(cum_m[t - 1]) / w0
            mean1 = float(cum_m[-1] - cum_m[t - 1]) / w1
            var = w0 * w1 * (mean0 - mean1) ** 2
            if var > max_var:
                max_var = var
                best_t = t
    return best_t


def add_to_histogram(image, hist: Optional[np.ndarray] = None) -> np.ndarray:
    """Returns ``hist`` (or an empty histogram) plus the grey level counts of ``image``."""
    img = _check_grey(image)
    base = np.zeros(256) if hist is None else np.asarray(hist, dtype=float).ravel()
    if base.size != 256:
        raise ValueError(f"the histogram must have 256 bins, got {base.size}")
    return base + np.bincount(img.ravel(), minlength=256)