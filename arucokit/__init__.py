"""Square fiducial marker maps, Levenberg-Marquardt optimisation and detection geometry."""

__version__ = "0.1.0"
__all__ = [
    "classify",
    "detection",
    "geometry",
    "levmarq",
    "markermap",
]