"""Tests for the command line entry point."""

from unittest.mock import AsyncMock, patch

import pytest

from deviation_import.cli import EXIT_CONFIG_ERROR, EXIT_REMOTE_ERROR, build_parser, run
from deviation_import.exceptions import AuthError, RegistryHTTPError
from deviation_import.models import FolderCheckpoint
from deviation_import.storage import ArtifactStore


@pytest.fixture
def dirs(tmp_path, monkeypatch):
    """Global directory flags pointing into tmp_path, with credentials unset."""
    for name in ["DEVIANTART_CLIENT_ID", "DEVIANTART_CLIENT_SECRET", "CHARDB_EMAIL", "CHARDB_PASSWORD"]:
        monkeypatch.delenv(name, raising=False)
    return ["--data-dir", str(tmp_path / "data"), "--config-dir", str(tmp_path / "config")]


@pytest.fixture
def cli_store(tmp_path):
    return ArtifactStore(tmp_path / "data", tmp_path / "config")


class TestParser:
    """Test argument parsing."""

    def test_download_arguments(self):
        """Download takes a username, folders and paging flags."""
        args = build_parser().parse_args([
            "download", "--username", "artist", "--folders", "A", "B", "--limit", "5", "--fresh",
        ])
        assert args.folders == ["A", "B"]
        assert args.limit == 5
        assert args.fresh

    def test_report_type_choices(self):
        """Only parsed and import reports exist."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["report", "--type", "other"])

    def test_subcommand_required(self):
        """Running without a subcommand is a usage error."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestRun:
    """Test subcommand dispatch and exit codes."""

    def test_download_without_credentials(self, dirs):
        """Missing DeviantArt credentials exit with the configuration code."""
        assert run([*dirs, "download", "--username", "a", "--folders", "A"]) == EXIT_CONFIG_ERROR

    def test_import_without_credentials(self, dirs):
        """A real import without registry credentials exits with the configuration code."""
        assert run([*dirs, "import"]) == EXIT_CONFIG_ERROR

    def test_fresh_clears_checkpoints(self, dirs, cli_store):
        """--fresh discards the saved cursor before downloading."""
        cli_store.checkpoints().put("A", FolderCheckpoint(folder_id="f1", offset=24))
        with patch("deviation_import.cli.GalleryDownloader") as downloader_class:
            downloader_class.return_value.run = AsyncMock(side_effect=AuthError("DA auth failed"))
            code = run([
                *dirs, "download", "--username", "a", "--folders", "A",
                "--client-id", "id", "--client-secret", "secret", "--fresh",
            ])

        assert code == EXIT_REMOTE_ERROR
        assert not cli_store.download_state_path.exists()

    def test_parse_without_mapping(self, dirs):
        """Parsing without a mapping config exits with the configuration code."""
        assert run([*dirs, "parse"]) == EXIT_CONFIG_ERROR

    def test_parse_and_report(self, dirs, cli_store, mapping_config, deviation_factory, capsys):
        """parse writes characters and report prints their summary."""
        cli_store.save_mapping_config(mapping_config)
        cli_store.write_deviation(deviation_factory("100001", "Features:<br>Common Eyes<br>Rare Horns"))

        assert run([*dirs, "parse"]) == 0
        assert run([*dirs, "report", "--type", "parsed"]) == 0

        out = capsys.readouterr().out
        assert "Total characters: 1" in out
        assert '1x "Rare Horns"' in out

    def test_import_dry_run(self, dirs, cli_store, mapping_config, character_factory):
        """A dry run needs no credentials and writes no results."""
        cli_store.save_mapping_config(mapping_config)
        cli_store.save_parsed_characters([character_factory("100001")])

        assert run([*dirs, "import", "--dry-run"]) == 0
        assert not cli_store.import_results_path.exists()

    def test_registry_failure_exit_code(self, dirs):
        """Registry failures exit with the remote error code."""
        with patch(
            "deviation_import.cli.scaffold_mapping",
            new=AsyncMock(side_effect=RegistryHTTPError("HTTP error: 502 - Bad Gateway", status_code=502)),
        ):
            code = run([
                *dirs, "scaffold-mapping", "--species-name", "Pillowing", "--community-id", "c1",
                "--email", "admin@test", "--password", "pw",
            ])
        assert code == EXIT_REMOTE_ERROR

    def test_exclude_add_list_remove(self, dirs, cli_store, capsys):
        """The exclude subcommand manages the skip list."""
        assert run([*dirs, "exclude", "--id", "123456", "--reason", "Duplicate"]) == 0
        assert run([*dirs, "exclude", "--list"]) == 0
        assert "123456" in capsys.readouterr().out

        assert run([*dirs, "exclude", "--remove", "123456"]) == 0
        assert cli_store.load_exclusions() == []

    def test_exclude_without_action(self, dirs):
        """exclude with no action is a configuration error."""
        assert run([*dirs, "exclude"]) == EXIT_CONFIG_ERROR
