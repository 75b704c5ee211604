"""Sets of markers whose corners share one reference system."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

import numpy as np
import yaml

_YAML_HEADER = "%YAML:1.0\n---\n"


class InfoType(enum.IntEnum):
    """Units in which the corners of a marker map are expressed."""

    NONE = -1
    PIX = 0
    METERS = 1


def _fmt(value: float) -> str:
    return f"{float(value):.9g}"


def _points_array(points) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 3))
    return arr.reshape(-1, 3).copy()


@dataclass(eq=False)
class Marker3DInfo:
    """The id of a marker and the 3D location of its corners."""

    id: int
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))

    def __post_init__(self) -> None:
        self.id = int(self.id)
        self.points = _points_array(self.points)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Marker3DInfo):
            return self.id == other.id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.id)

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, idx: int) -> np.ndarray:
        return self.points[idx]

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.points)

    def marker_size(self) -> float:
        """Length of the marker side (distance between the first two corners)."""
        if len(self.points) < 2:
            raise ValueError(f"marker {self.id} has fewer than two corners")
        return float(np.linalg.norm(self.points[0] - self.points[1]))

    def to_text(self) -> str:
        """Serialises as ``id n x y z ...`` followed by a space."""
        parts = [str(self.id), str(len(self.points))]
        for x, y, z in self.points:
            parts.extend((_fmt(x), _fmt(y), _fmt(z)))
        return " ".join(parts) + " "

    @classmethod
    def parse(cls, tokens: Iterator[str]) -> "Marker3DInfo":
        """Reads one marker from an iterator of whitespace separated tokens."""
        try:
            marker_id = int(next(tokens))
            count = int(next(tokens))
            coords = [float(next(tokens)) for _ in range(3 * count)]
        except StopIteration:
            raise ValueError("unexpected end of marker data") from None
        return cls(marker_id, np.array(coords).reshape(count, 3))


class MarkerMap:
    """A list of markers fixed to a common reference system.

    Corners are in pixels (typical for a printable board whose real size is
    not yet known) or in meters, as told by ``info_type``.
    """

    def __init__(
        self,
        markers: Iterable[Marker3DInfo] = (),
        info_type: InfoType = InfoType.NONE,
        dictionary: str = "",
    ) -> None:
        self.markers: list[Marker3DInfo] = list(markers)
        self.info_type = InfoType(info_type)
        self.dictionary = dictionary

    def __len__(self) -> int:
        return len(self.markers)

    def __iter__(self) -> Iterator[Marker3DInfo]:
        return iter(self.markers)

    def __getitem__(self, idx: int) -> Marker3DInfo:
        return self.markers[idx]

    def append(self, marker: Marker3DInfo) -> None:
        self.markers.append(marker)

    def is_expressed_in_meters(self) -> bool:
        return self.info_type == InfoType.METERS

    def is_expressed_in_pixels(self) -> bool:
        return self.info_type == InfoType.PIX

    def convert_to_meters(self, marker_size: float) -> "MarkerMap":
        """Returns a copy in meters, given the real side of a marker in meters."""
        if not self.is_expressed_in_pixels():
            raise ValueError("the board is not expressed in pixels")
        if not self.markers:
            raise ValueError("the board has no markers")
        size_pix = int(self.markers[0].marker_size())
        if size_pix <= 0:
            raise ValueError("the first marker has a null size")
        pix_size = float(marker_size) / float(size_pix)
        converted = copy.deepcopy(self)
        converted.info_type = InfoType.METERS
        for marker in converted.markers:
            marker.points[:4] *= pix_size
        return converted

    def indices_of(self, markers) -> list[int]:
        """Positions in ``markers`` of the elements whose id belongs to this map."""
        known = set(self.ids())
        return [i for i, m in enumerate(markers) if int(getattr(m, "id", m)) in known]

    def marker_info(self, marker_id: int) -> Marker3DInfo:
        """The marker with the given id; raises KeyError if absent."""
        for marker in self.markers:
            if marker.id == marker_id:
                return marker
        raise KeyError(f"marker with id {marker_id} is not found")

    def index_of(self, marker_id: int) -> Optional[int]:
        """Position of the marker with the given id, or None if absent."""
        for i, marker in enumerate(self.markers):
            if marker.id == marker_id:
                return i
        return None

    def ids(self) -> list[int]:
        return [m.id for m in self.markers]

    def save(self, path: Union[str, Path]) -> None:
        """Writes the map as a YAML document."""
        data = {
            "aruco_bc_dict": self.dictionary,
            "aruco_bc_nmarkers": len(self.markers),
            "aruco_bc_mInfoType": int(self.info_type),
            "aruco_bc_markers": [
                {"id": m.id, "corners": [[float(v) for v in p] for p in m.points]}
                for m in self.markers
            ],
        }
        body = yaml.safe_dump(data, sort_keys=False, default_flow_style=None)
        Path(path).write_text(_YAML_HEADER + body, encoding="utf-8")

    @classmethod
    def load(cls, path: Union[str, Path]) -> "MarkerMap":
        """Reads a map written by :meth:`save`."""
        text = Path(path).read_text(encoding="utf-8")
        if text.startswith("%YAML"):
            text = text.split("\n", 1)[1] if "\n" in text else ""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid file type: {exc} file={path}") from exc
        if not isinstance(data, dict) or "aruco_bc_nmarkers" not in data:
            raise ValueError(f"invalid file type file={path}")
        count = int(data["aruco_bc_nmarkers"])
        info_type = InfoType(int(data.get("aruco_bc_mInfoType", InfoType.PIX)))
        entries = data.get("aruco_bc_markers") or []
        if len(entries) != count:
            raise ValueError(f"invalid file type: expected {count} markers file={path}")
        markers = []
        for entry in entries:
            corners = entry.get("corners") or []
            if any(len(c) != 3 for c in corners):
                raise ValueError(f"invalid file type 3 file={path}")
            markers.append(Marker3DInfo(int(entry["id"]), corners))
        dictionary = data.get("aruco_bc_dict", "")
        return cls(markers, info_type, "" if dictionary is None else str(dictionary))

    def to_text(self) -> str:
        """Serialises as ``type n <markers> dictionary``."""
        return (
            f"{int(self.info_type)} {len(self.markers)} "
            + "".join(m.to_text() for m in self.markers)
            + self.dictionary
        )

    @classmethod
    def from_text(cls, text: str) -> "MarkerMap":
        """Parses the output of :meth:`to_text`."""
        tokens = iter(text.split())
        try:
            info_type = InfoType(int(next(tokens)))
            count = int(next(tokens))
        except StopIteration:
            raise ValueError("unexpected end of marker map data") from None
        markers = [Marker3DInfo.parse(tokens) for _ in range(count)]
        dictionary = next(tokens, "")
        return cls(markers, info_type, dictionary)