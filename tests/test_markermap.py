from collections import namedtuple

import numpy as np
import pytest

from arucokit.markermap import InfoType, Marker3DInfo, MarkerMap

Detected = namedtuple("Detected", "id")


def _square(marker_id, x0, y0, side):
    return Marker3DInfo(
        marker_id,
        [[x0, y0, 0], [x0 + side, y0, 0], [x0 + side, y0 - side, 0], [x0, y0 - side, 0]],
    )


def _pixel_map():
    return MarkerMap(
        [_square(1, 0, 0, 100), _square(2, 200, 0, 100)], InfoType.PIX, "ARUCO"
    )


def test_marker_size():
    assert _square(5, 0, 0, 100).marker_size() == pytest.approx(100.0)


def test_marker_equality_by_id():
    assert _square(3, 0, 0, 1) == _square(3, 10, 10, 5)
    assert not (_square(3, 0, 0, 1) == _square(4, 0, 0, 1))


def test_marker_to_text():
    m = Marker3DInfo(3, [[0, 0, 0], [1, 0, 0]])
    assert m.to_text() == "3 2 0 0 0 1 0 0 "


def test_map_to_text():
    mm = MarkerMap([Marker3DInfo(3, [[0, 0, 0], [1, 0, 0]])], InfoType.METERS, "ARUCO")
    assert mm.to_text() == "1 1 3 2 0 0 0 1 0 0 ARUCO"


def test_text_round_trip():
    mm = _pixel_map()
    back = MarkerMap.from_text(mm.to_text())
    assert back.info_type == InfoType.PIX
    assert back.dictionary == "ARUCO"
    assert back.ids() == [1, 2]
    for a, b in zip(mm, back):
        np.testing.assert_allclose(a.points, b.points)


def test_from_text_truncated_raises():
    with pytest.raises(ValueError):
        MarkerMap.from_text("1 2 3 4 0 0")


def test_save_load_round_trip(tmp_path):
    path = tmp_path / "map.yml"
    mm = _pixel_map()
    mm.save(path)
    assert path.read_text().startswith("%YAML:1.0")
    back = MarkerMap.load(path)
    assert back.ids() == mm.ids()
    assert back.info_type == mm.info_type
    assert back.dictionary == "ARUCO"
    for a, b in zip(mm, back):
        np.testing.assert_allclose(a.points, b.points)


def test_load_invalid_file(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("%YAML:1.0\n---\nsomething: 1\n")
    with pytest.raises(ValueError):
        MarkerMap.load(path)


def test_load_bad_corner(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text(
        "%YAML:1.0\n---\naruco_bc_nmarkers: 1\naruco_bc_mInfoType: 1\n"
        "aruco_bc_markers:\n  - { id: 4, corners: [ [0, 0], [1, 0, 0] ] }\n"
    )
    with pytest.raises(ValueError):
        MarkerMap.load(path)


def test_convert_to_meters():
    mm = _pixel_map()
    meters = mm.convert_to_meters(0.05)
    assert meters.is_expressed_in_meters()
    assert mm.is_expressed_in_pixels()
    assert meters[0].marker_size() == pytest.approx(0.05)
    assert mm[0].marker_size() == pytest.approx(100.0)
    np.testing.assert_allclose(meters[1].points, mm[1].points * 0.05 / 100)


def test_convert_to_meters_requires_pixels():
    mm = _pixel_map().convert_to_meters(0.05)
    with pytest.raises(ValueError):
        mm.convert_to_meters(0.05)


def test_indices_of_worked_example():
    mm = MarkerMap([Marker3DInfo(i) for i in (10, 21, 31, 41, 92)], InfoType.PIX)
    detected = [Detected(i) for i in (10, 88, 9, 12, 41)]
    assert mm.indices_of(detected) == [0, 4]


def test_marker_info_and_index():
    mm = _pixel_map()
    assert mm.marker_info(2).id == 2
    assert mm.index_of(2) == 1
    assert mm.index_of(7) is None
    with pytest.raises(KeyError):
        mm.marker_info(7)


def test_ids():
    assert _pixel_map().ids() == [1, 2]