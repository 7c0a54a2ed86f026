"""
Deviation Import - batch pipeline that moves character designs from a
DeviantArt gallery into a character registry.
"""

from importlib.metadata import PackageNotFoundError, version as _get_version

from .config import Settings, load_settings
from .storage import ArtifactStore

try:
    __version__ = _get_version("deviation-import")
except PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = ["ArtifactStore", "Settings", "load_settings"]
