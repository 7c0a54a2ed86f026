"""Tests for the resumable gallery downloader."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from deviation_import.exceptions import ApiError, AuthError
from deviation_import.models import FolderCheckpoint
from deviation_import.source.downloader import GalleryDownloader, extract_numeric_id
from deviation_import.storage import JsonCheckpointStore, MemoryCheckpointStore


def item(numeric_id: int) -> dict:
    return {
        "deviationid": f"uuid-{numeric_id}",
        "url": f"https://www.deviantart.com/artist/art/Pillowing-{numeric_id}",
        "title": f"Pillowing {numeric_id}",
        "author": {"username": "artist"},
        "published_time": "1700000000",
        "thumbs": [{"src": f"https://img.test/{numeric_id}.png"}],
    }


def gallery(count: int, start: int = 100000) -> list[dict]:
    return [item(start + i) for i in range(count)]


def make_client(items: list[dict], folder_name: str = "Masterlist") -> MagicMock:
    """Mock gateway serving one folder from a list of items."""
    client = MagicMock()
    client.list_folders = AsyncMock(return_value=[
        {"folderid": "folder-1", "name": folder_name, "size": len(items)},
        {"folderid": "folder-2", "name": "Other", "size": 0},
    ])

    async def list_folder_page(folder_id, username, offset, limit=24):
        page = items[offset:offset + limit]
        return {"results": page, "has_more": offset + limit < len(items)}

    client.list_folder_page = AsyncMock(side_effect=list_folder_page)
    client.fetch_item_content = AsyncMock(return_value="<p>Features:</p>")
    return client


class TestExtractNumericId:
    """Test numeric id extraction from deviation URLs."""

    def test_trailing_digits(self):
        """The trailing run of digits is the id."""
        assert extract_numeric_id("https://www.deviantart.com/a/art/Name-123456") == "123456"

    def test_trailing_slash_ignored(self):
        """A trailing slash does not hide the id."""
        assert extract_numeric_id("https://www.deviantart.com/a/art/Name-987654321/") == "987654321"

    def test_short_digit_run_rejected(self):
        """Fewer than six trailing digits is not an id."""
        assert extract_numeric_id("https://www.deviantart.com/a/art/Name-12345") is None

    def test_no_digits(self):
        """A URL without trailing digits yields None."""
        assert extract_numeric_id("https://www.deviantart.com/a/art/Name") is None


class TestGalleryDownloader:
    """Test folder iteration, checkpointing and resume."""

    @pytest.mark.asyncio
    async def test_downloads_all_pages_and_marks_complete(self, store):
        """Every item is written and the folder ends complete."""
        client = make_client(gallery(30))
        checkpoints = MemoryCheckpointStore()

        summary = await GalleryDownloader(client, store, checkpoints).run("artist", ["Masterlist"])

        assert summary.total_saved == 30
        assert len(store.list_deviation_ids()) == 30
        assert checkpoints.get("Masterlist") == FolderCheckpoint(folder_id="folder-1", offset=30, complete=True)
        assert [c.args[2] for c in client.list_folder_page.await_args_list] == [0, 24]

    @pytest.mark.asyncio
    async def test_deviation_file_contents(self, store):
        """Saved deviations carry metadata, description and folder."""
        client = make_client(gallery(1))
        await GalleryDownloader(client, store, MemoryCheckpointStore()).run("artist", ["Masterlist"])

        deviation = store.read_deviation("100000")
        assert deviation.deviation_id == "uuid-100000"
        assert deviation.author_username == "artist"
        assert deviation.description_html == "<p>Features:</p>"
        assert deviation.folder_name == "Masterlist"
        assert deviation.thumbnail_url == "https://img.test/100000.png"

    @pytest.mark.asyncio
    async def test_resume_from_persisted_offset(self, store):
        """An incomplete checkpoint at offset 24 resumes there, never at 0."""
        items = gallery(30)
        client = make_client(items)
        checkpoints = store.checkpoints()
        checkpoints.put("Masterlist", FolderCheckpoint(folder_id="folder-1", offset=24, complete=False))

        summary = await GalleryDownloader(client, store, store.checkpoints()).run("artist", ["Masterlist"])

        assert [c.args[2] for c in client.list_folder_page.await_args_list] == [24]
        assert summary.total_saved == 6
        fetched = {c.args[0] for c in client.fetch_item_content.await_args_list}
        assert fetched == {f"uuid-{100000 + i}" for i in range(24, 30)}

    @pytest.mark.asyncio
    async def test_complete_folder_skipped(self, store):
        """A folder marked complete makes no page requests."""
        client = make_client(gallery(5))
        checkpoints = MemoryCheckpointStore()
        checkpoints.put("Masterlist", FolderCheckpoint(folder_id="folder-1", offset=5, complete=True))

        summary = await GalleryDownloader(client, store, checkpoints).run("artist", ["Masterlist"])

        client.list_folder_page.assert_not_awaited()
        assert summary.folders[0].already_complete

    @pytest.mark.asyncio
    async def test_state_persisted_after_every_page(self, store):
        """The checkpoint file is rewritten once per fetched page."""
        client = make_client(gallery(50))
        checkpoints = MemoryCheckpointStore()
        checkpoints.put = MagicMock(wraps=checkpoints.put)

        await GalleryDownloader(client, store, checkpoints).run("artist", ["Masterlist"])

        offsets = [c.args[1].offset for c in checkpoints.put.call_args_list]
        assert offsets == [24, 48, 50]

    @pytest.mark.asyncio
    async def test_missing_folder_warns_and_continues(self, store, caplog):
        """An unknown folder is reported and the others still download."""
        client = make_client(gallery(2))

        summary = await GalleryDownloader(client, store, MemoryCheckpointStore()).run(
            "artist", ["Nope", "Masterlist"]
        )

        assert summary.missing_folders == ["Nope"]
        assert summary.total_saved == 2
        assert 'Folder "Nope" not found. Available: Masterlist, Other' in caplog.text

    @pytest.mark.asyncio
    async def test_item_without_numeric_id_skipped(self, store, caplog):
        """Items whose URL has no id are skipped with a warning."""
        items = gallery(2)
        items[0]["url"] = "https://www.deviantart.com/artist/art/Untitled"
        client = make_client(items)

        summary = await GalleryDownloader(client, store, MemoryCheckpointStore()).run("artist", ["Masterlist"])

        assert summary.folders[0].saved == 1
        assert summary.folders[0].skipped == 1
        assert "Could not extract numeric ID" in caplog.text

    @pytest.mark.asyncio
    async def test_content_failure_degrades_to_empty_description(self, store, caplog):
        """A failed description fetch keeps the item with an empty description."""
        client = make_client(gallery(1))
        client.fetch_item_content = AsyncMock(side_effect=ApiError("DA API error: 500", 500, "x"))

        summary = await GalleryDownloader(client, store, MemoryCheckpointStore()).run("artist", ["Masterlist"])

        assert summary.total_saved == 1
        assert store.read_deviation("100000").description_html == ""
        assert "Failed to fetch description" in caplog.text

    @pytest.mark.asyncio
    async def test_auth_failure_aborts(self, store):
        """Authentication failures abort the run."""
        client = make_client(gallery(1))
        client.fetch_item_content = AsyncMock(side_effect=AuthError("DA auth failed"))

        with pytest.raises(AuthError):
            await GalleryDownloader(client, store, MemoryCheckpointStore()).run("artist", ["Masterlist"])

    @pytest.mark.asyncio
    async def test_page_failure_aborts(self, store):
        """A failed page enumeration raises instead of skipping the page."""
        client = make_client(gallery(1))
        client.list_folder_page = AsyncMock(side_effect=ApiError("DA API: max retries exceeded", 503, "x"))

        with pytest.raises(ApiError):
            await GalleryDownloader(client, store, MemoryCheckpointStore()).run("artist", ["Masterlist"])

    @pytest.mark.asyncio
    async def test_limit_does_not_advance_past_unprocessed_items(self, store):
        """A limit stopping mid-page leaves the rest of the page for the next run."""
        client = make_client(gallery(30))
        checkpoints = MemoryCheckpointStore()

        summary = await GalleryDownloader(client, store, checkpoints).run("artist", ["Masterlist"], limit=5)

        assert summary.total_saved == 5
        assert summary.limit_reached
        assert checkpoints.get("Masterlist") == FolderCheckpoint(folder_id="folder-1", offset=5, complete=False)

    @pytest.mark.asyncio
    async def test_limit_on_page_boundary_stops_paging(self, store):
        """A limit reached at the end of a page requests no further page."""
        client = make_client(gallery(30))
        checkpoints = MemoryCheckpointStore()

        summary = await GalleryDownloader(client, store, checkpoints).run("artist", ["Masterlist"], limit=24)

        assert summary.total_saved == 24
        assert summary.limit_reached
        assert [c.args[2] for c in client.list_folder_page.await_args_list] == [0]
        assert checkpoints.get("Masterlist") == FolderCheckpoint(folder_id="folder-1", offset=24, complete=False)

    @pytest.mark.asyncio
    async def test_json_checkpoint_store_round_trip(self, store):
        """The persisted download state reloads with the same cursor."""
        client = make_client(gallery(3))
        await GalleryDownloader(client, store, store.checkpoints()).run("artist", ["Masterlist"])

        reloaded = JsonCheckpointStore(store.download_state_path)
        assert reloaded.get("Masterlist").complete
        assert reloaded.get("Masterlist").offset == 3
