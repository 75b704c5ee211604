"""Plane geometry on quadrilateral marker candidates and their contours."""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np

_PI = 3.14159
_A22 = _PI / 8.0
_A3_22 = 3.0 * _PI / 8.0
_A5_22 = 5.0 * _PI / 8.0
_A7_22 = 7.0 * _PI / 8.0


def _quad(candidate) -> np.ndarray:
    pts = np.array(candidate, dtype=float).reshape(-1, 2)
    if len(pts) != 4:
        raise ValueError(f"a candidate needs 4 corners, got {len(pts)}")
    return pts


def perimeter(points) -> int:
    """Sum of the closed polygon's side lengths, each truncated to an integer."""
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(pts) == 0:
        return 0
    sides = np.linalg.norm(pts - np.roll(pts, -1, axis=0), axis=1)
    return int(sum(int(s) for s in sides))


def interpolate_2d_line(points) -> np.ndarray:
    """Fits a line ``a*x + b*y + c = 0`` to the points by least squares.

    When the points spread more along x, the result is ``(a, -1, c)``;
    otherwise it is ``(-1, b, c)``.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(pts) == 0:
        raise ValueError("at least one point is required to fit a line")
    xs, ys = pts[:, 0], pts[:, 1]
    ones = np.ones(len(pts))
    if np.ptp(xs) > np.ptp(ys):
        sol = np.linalg.lstsq(np.column_stack([xs, ones]), ys, rcond=None)[0]
        return np.array([sol[0], -1.0, sol[1]])
    sol = np.linalg.lstsq(np.column_stack([ys, ones]), xs, rcond=None)[0]
    return np.array([-1.0, sol[0], sol[1]])


def cross_point(line1, line2) -> np.ndarray:
    """Intersection of two lines given as ``(a, b, c)`` with ``a*x + b*y + c = 0``."""
    l1 = np.asarray(line1, dtype=float).ravel()
    l2 = np.asarray(line2, dtype=float).ravel()
    if l1.size != 3 or l2.size != 3:
        raise ValueError("a line is given by three coefficients")
    a = np.array([[l1[0], l1[1]], [l2[0], l2[1]]])
    b = np.array([-l1[2], -l2[2]])
    return np.linalg.lstsq(a, b, rcond=None)[0]


def _increments(angle: float, fact: int) -> tuple[int, int]:
    if _A22 < angle < 3 * _A22:
        return fact, fact
    if -_A22 < angle < _A22:
        return fact, 0
    if -_A3_22 < angle < -_A22:
        return fact, -fact
    if -_A5_22 < angle < -_A3_22:
        return 0, -fact
    if -_A7_22 < angle < -_A5_22:
        return -fact, -fact
    if -_PI < angle < -_A7_22 or _A7_22 < angle < _PI:
        return -fact, 0
    if _A5_22 < angle < _A7_22:
        return -fact, fact
    if _A3_22 < angle < _A5_22:
        return fact, fact
    return 0, 0


def enlarge_candidate(candidate, fact) -> np.ndarray:
    """Pushes opposite corners apart by ``fact`` pixels along their diagonal direction.

    Used to recover the real corners of candidates found in eroded images.
    ``fact`` is truncated to an integer. Returns a new 4x2 array.
    """
    cand = _quad(candidate)
    step = int(fact)
    for j in range(2):
        start, end = j, (j + 2) % 4
        if cand[start, 0] > cand[end, 0]:
            start, end = end, start
        v = cand[end] - cand[start]
        incx, incy = _increments(math.atan2(v[1], v[0]), step)
        cand[end] += (incx, incy)
        cand[start] -= (incx, incy)
    return cand


def sort_anticlockwise(candidates: Iterable) -> list[np.ndarray]:
    """Orders every candidate's corners anti-clockwise by swapping corners 1 and 3 when needed."""
    result = []
    for candidate in candidates:
        cand = _quad(candidate)
        d1 = cand[1] - cand[0]
        d2 = cand[2] - cand[0]
        if d1[0] * d2[1] - d1[1] * d2[0] < 0.0:
            cand[[1, 3]] = cand[[3, 1]]
        result.append(cand)
    return result


def refine_corners_with_contour(corners, contour) -> np.ndarray:
    """Refines four corners by fitting lines to the contour between them.

    Each corner is matched to its nearest contour point; the contour
    stretches between consecutive corners are fitted with lines, and the
    refined corners are the intersections of neighbouring lines.
    """
    marker = _quad(corners)
    pts = np.asarray(contour, dtype=float).reshape(-1, 2)
    n = len(pts)
    if n == 0:
        raise ValueError("the contour is empty")

    dists = ((pts[:, None, :] - marker[None, :, :]) ** 2).sum(axis=2)
    idx = [int(np.argmin(dists[:, k])) for k in range(4)]

    if idx[1] > idx[0] and (idx[2] > idx[1] or idx[2] < idx[0]):
        inverse = False
    elif idx[2] > idx[1] and idx[2] < idx[0]:
        inverse = False
    else:
        inverse = True
    inc = -1 if inverse else 1

    lines = []
    for side in range(4):
        target = idx[(side + 1) % 4]
        segment = []
        j = idx[side]
        while j != target:
            if j == n and not inverse:
                j = 0
            elif j == 0 and inverse:
                j = n - 1
            segment.append(pts[j])
            if j == target:
                break
            j += inc
        if not segment:
            raise ValueError("two corners match the same contour point")
        lines.append(interpolate_2d_line(segment))

    return np.array([cross_point(lines[(i - 1) % 4], lines[i]) for i in range(4)])