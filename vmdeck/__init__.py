"""vmdeck package."""

__version__ = "0.1.0"

__all__ = [
    "capabilities",
    "cli",
    "codec",
    "config",
    "constants",
    "disk",
    "exceptions",
    "firmware",
    "models",
    "store",
    "utils",
]
