[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "arucokit"
version = "0.1.0"
description = "Square fiducial marker tooling: marker maps, Levenberg-Marquardt optimisation and detection geometry."
requires-python = ">=3.10"
keywords = ["aruco", "fiducial", "markers", "computer vision", "levenberg-marquardt", "otsu"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Recognition",
]
dependencies = [
    "numpy",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["arucokit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
