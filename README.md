# arucokit

Building blocks for working with square fiducial markers: a general
Levenberg-Marquardt solver, marker maps with file storage, and the
geometric and image-statistics steps used when finding markers in images.

## Installation

```
pip install arucokit
```

For running the tests:

```
pip install "arucokit[test]"
pytest
```

## Modules

- `arucokit.levmarq`: `LevMarq` minimises the sum of squares of a residual
  function. `solve(z, f, jac)` returns the final parameters and error; when
  `jac` is `None` the Jacobian is estimated by central differences
  (`calc_derivatives`). For step-by-step use there are `init`, `step` and
  `current_solution`. A `stop_function` and a `step_callback` can be set
  on the solver, and `verbose` prints progress.
- `arucokit.markermap`: `MarkerMap` holds `Marker3DInfo` entries (an id and
  its corner points) in a common reference system, in pixels or meters as
  given by `InfoType`. It looks markers up by id (`marker_info`,
  `index_of`, `ids`, `indices_of`), converts a pixel map to meters
  (`convert_to_meters`), saves to and loads from YAML files (`save`,
  `load`), and writes or parses a whitespace separated text form
  (`to_text`, `from_text`).
- `arucokit.geometry`: `perimeter`, least-squares line fitting
  (`interpolate_2d_line`), line intersection (`cross_point`), pushing
  candidate corners outwards (`enlarge_candidate`), anti-clockwise corner
  ordering (`sort_anticlockwise`) and corner refinement from a contour
  (`refine_corners_with_contour`).
- `arucokit.classify`: `assign_class_fast` classifies `KeyPoint`s by the
  regions in a window around them, `filter_ambiguous_query` keeps the best
  `Match` per query index, `add_to_histogram` counts grey levels and `otsu`
  picks a threshold from a 256-bin histogram.
- `arucokit.detection`: working sizes of a detector
  (`min_marker_size_pix`, `adaptive_window_sizes`, `pyramid_sizes`,
  `marker_warp_size`) and clean-up of detections
  (`remove_duplicate_markers`, `best_rotation`).

## Examples

```python
import numpy as np
from arucokit.levmarq import LevMarq

target = np.array([1.0, -2.0])

def residuals(z):
    return z - target

solver = LevMarq(100, 1e-12, 0.0, 1.0, 1e-3)
z, err = solver.solve(np.zeros(2), residuals, None)
```

```python
from arucokit.markermap import MarkerMap

board = MarkerMap.load("board.yml")
print(board.ids())
in_meters = board.convert_to_meters(0.05)
```

```python
import numpy as np
from arucokit.classify import add_to_histogram, otsu

image = np.zeros((8, 8), dtype=np.uint8)
image[:, 4:] = 200
threshold = otsu(add_to_histogram(image))
```

## What it does not do

The package does not detect markers in an image from start to finish: it
has no thresholding, contour finding or perspective warping of images, no
marker dictionaries or decoding of marker ids, and no camera pose
estimation or tracking against a marker map. It offers no command-line
program. The modules above are the pieces such a pipeline would be
assembled from.