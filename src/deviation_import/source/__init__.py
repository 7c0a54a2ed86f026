"""
Source platform (DeviantArt) access: API gateway and resumable downloader.
"""

from .client import DeviantArtClient, RateLimiter
from .downloader import DownloadSummary, GalleryDownloader, extract_numeric_id

__all__ = [
    "DeviantArtClient",
    "RateLimiter",
    "GalleryDownloader",
    "DownloadSummary",
    "extract_numeric_id",
]
