"""
Resumable gallery downloader.

Walks the requested gallery folders page by page, writes one JSON file per
deviation, and persists the folder cursor after every page so a killed run
resumes where it stopped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ..exceptions import ApiError, AuthError
from ..models import Deviation, FolderCheckpoint
from ..storage import ArtifactStore, CheckpointStore
from .client import DEFAULT_PAGE_SIZE, DeviantArtClient

logger = logging.getLogger("deviation-import.source")

# Deviation URLs end in "<slug>-<digits>"; the digits are the stable id.
NUMERIC_ID_PATTERN = re.compile(r"(\d{6,})$")


def extract_numeric_id(url: str) -> str | None:
    """
    Extract the stable numeric id from the trailing digits of a deviation URL.

    Only the known ``.../art/Title-123456`` shape is supported; anything
    without a trailing run of at least six digits yields None.
    """
    match = NUMERIC_ID_PATTERN.search(url.rstrip("/"))
    return match.group(1) if match else None


@dataclass
class FolderResult:
    name: str
    saved: int = 0
    skipped: int = 0
    already_complete: bool = False


@dataclass
class DownloadSummary:
    """What one download run did, per folder."""

    folders: list[FolderResult] = field(default_factory=list)
    missing_folders: list[str] = field(default_factory=list)
    limit_reached: bool = False

    @property
    def total_saved(self) -> int:
        return sum(f.saved for f in self.folders)


class GalleryDownloader:
    """
    Downloads gallery folders into an ArtifactStore.

    Attributes:
        client: Source API gateway
        store: Artifact store receiving one file per deviation
        checkpoints: Folder cursor store (key = folder name)
        page_size: Items requested per page
    """

    def __init__(
        self,
        client: DeviantArtClient,
        store: ArtifactStore,
        checkpoints: CheckpointStore,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.client = client
        self.store = store
        self.checkpoints = checkpoints
        self.page_size = page_size

    async def run(self, username: str, folder_names: list[str], limit: int = 0) -> DownloadSummary:
        """
        Download the named folders of a user's gallery.

        Args:
            username: Gallery owner on the source platform
            folder_names: Folder names to download, in order
            limit: Stop after this many saved items in total (0 = unlimited)

        Returns:
            DownloadSummary for the run

        Raises:
            AuthError, ApiError: Folder listing or page enumeration failed
        """
        summary = DownloadSummary()

        logger.info(f"Fetching gallery folders for {username}...")
        folders = await self.client.list_folders(username)
        by_name = {f.get("name"): f for f in folders}

        for folder_name in folder_names:
            folder = by_name.get(folder_name)
            if folder is None:
                available = ", ".join(str(f.get("name")) for f in folders)
                logger.warning(f'Folder "{folder_name}" not found. Available: {available}')
                summary.missing_folders.append(folder_name)
                continue

            remaining = limit - summary.total_saved if limit > 0 else 0
            result = await self._download_folder(username, folder_name, folder, remaining)
            summary.folders.append(result)

            if limit > 0 and summary.total_saved >= limit:
                logger.info(f"Reached limit of {limit} deviations.")
                summary.limit_reached = True
                break

        logger.info("Download complete.")
        return summary

    async def _download_folder(
        self,
        username: str,
        folder_name: str,
        folder: dict[str, Any],
        limit: int,
    ) -> FolderResult:
        result = FolderResult(name=folder_name)
        folder_id = str(folder.get("folderid"))

        checkpoint = self.checkpoints.get(folder_name)
        if checkpoint is not None and checkpoint.complete:
            logger.info(f'Folder "{folder_name}" already complete, skipping.')
            result.already_complete = True
            return result

        offset = checkpoint.offset if checkpoint is not None else 0
        size = folder.get("size", "?")
        logger.info(
            f'Downloading folder "{folder_name}" ({size} items, starting at offset {offset})...'
        )

        while True:
            page = await self.client.list_folder_page(folder_id, username, offset, self.page_size)
            items = page.get("results", [])
            has_more = bool(page.get("has_more"))

            processed = 0
            for item in items:
                if limit > 0 and result.saved >= limit:
                    break
                processed += 1
                if await self._save_item(item, folder_name):
                    result.saved += 1
                else:
                    result.skipped += 1

            offset += processed
            cut_short = processed < len(items)
            complete = not has_more and not cut_short
            self.checkpoints.put(
                folder_name,
                FolderCheckpoint(folder_id=folder_id, offset=offset, complete=complete),
            )
            logger.info(f"  {folder_name}: {offset}/{size} deviations processed")

            if cut_short or not has_more or not items:
                break
            if limit > 0 and result.saved >= limit:
                break

        logger.info(f'Completed folder "{folder_name}": {result.saved} deviations saved.')
        return result

    async def _save_item(self, item: dict[str, Any], folder_name: str) -> bool:
        url = item.get("url", "")
        numeric_id = extract_numeric_id(url)
        if numeric_id is None:
            logger.warning(f"Could not extract numeric ID from URL: {url}")
            return False

        deviation_id = str(item.get("deviationid", ""))
        description_html = ""
        try:
            description_html = await self.client.fetch_item_content(deviation_id)
        except AuthError:
            raise
        except (ApiError, ValueError) as e:
            logger.warning(f"Failed to fetch description for {deviation_id}: {e}")

        thumbs = item.get("thumbs") or []
        deviation = Deviation(
            numeric_id=numeric_id,
            deviation_id=deviation_id,
            url=url,
            title=item.get("title", ""),
            author_username=(item.get("author") or {}).get("username", ""),
            description_html=description_html,
            folder_name=folder_name,
            published_time=item.get("published_time"),
            thumbnail_url=thumbs[0].get("src") if thumbs else None,
        )
        self.store.write_deviation(deviation)
        return True
