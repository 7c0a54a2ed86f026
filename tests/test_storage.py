"""Tests for artifact storage."""

import json

import pytest

from deviation_import.exceptions import ArtifactError
from deviation_import.models import FolderCheckpoint, MappingConfig
from deviation_import.storage import JsonCheckpointStore, read_json, write_json


class TestWriteJson:
    """Test atomic JSON writes."""

    def test_creates_parent_dirs_and_no_temp_left(self, tmp_path):
        """Parents are created and the temp file is renamed away."""
        target = tmp_path / "a" / "b" / "out.json"
        write_json(target, {"x": 1})

        assert json.loads(target.read_text()) == {"x": 1}
        assert not (target.parent / "out.json.tmp").exists()

    def test_two_space_indent_and_trailing_newline(self, tmp_path):
        """Output is indented by two spaces and ends with a newline."""
        target = tmp_path / "out.json"
        write_json(target, {"x": [1]})

        assert target.read_text() == '{\n  "x": [\n    1\n  ]\n}\n'

    def test_models_written_with_aliases(self, tmp_path, mapping_config):
        """Pydantic models are dumped with camelCase keys."""
        target = tmp_path / "config.json"
        write_json(target, mapping_config)

        data = json.loads(target.read_text())
        assert data["speciesId"] == "species-1"
        assert "rarityToVariantId" in data


class TestReadJson:
    """Test validated reads."""

    def test_missing_file(self, tmp_path):
        """A missing file raises ArtifactError."""
        with pytest.raises(ArtifactError) as exc_info:
            read_json(tmp_path / "nope.json", MappingConfig)
        assert "File not found" in str(exc_info.value)

    def test_invalid_content(self, tmp_path):
        """Content failing validation raises ArtifactError."""
        target = tmp_path / "bad.json"
        target.write_text('{"speciesId": "x"}')

        with pytest.raises(ArtifactError) as exc_info:
            read_json(target, MappingConfig)
        assert "Invalid content" in str(exc_info.value)

    def test_invalid_regex_rejected(self, tmp_path):
        """A broken ignore pattern is rejected at load time."""
        target = tmp_path / "bad.json"
        target.write_text(json.dumps({
            "speciesId": "s", "communityId": "c", "rarityOrder": ["Common"], "ignorePatterns": ["("],
        }))

        with pytest.raises(ArtifactError):
            read_json(target, MappingConfig)

    def test_round_trip_hand_written_config(self, tmp_path):
        """A hand-written camelCase config loads into the model."""
        target = tmp_path / "trait-mapping.json"
        target.write_text(json.dumps({
            "speciesId": "s",
            "communityId": "c",
            "rarityOrder": ["Common", "Rare"],
            "rarityToVariantId": {"Common": "v1", "Rare": "TODO"},
            "rules": [{"pattern": "Eyes", "traitId": "t", "enumValueId": "e"}],
            "compositeRules": [{"linePattern": "^(.+) and (.+)$"}],
        }))

        config = read_json(target, MappingConfig)
        assert config.rules[0].enum_value_id == "e"
        assert config.composite_rules[0].extractions == []
        assert config.todo_variant_count() == 1


class TestJsonCheckpointStore:
    """Test the persisted download cursor."""

    def test_put_persists_and_reloads(self, tmp_path):
        """Every put is visible to a freshly loaded store."""
        path = tmp_path / "download-state.json"
        JsonCheckpointStore(path).put("A", FolderCheckpoint(folder_id="f1", offset=24))

        reloaded = JsonCheckpointStore(path)
        assert reloaded.get("A") == FolderCheckpoint(folder_id="f1", offset=24, complete=False)
        assert "lastUpdated" in json.loads(path.read_text())

    def test_clear_removes_file(self, tmp_path):
        """Clearing drops the cursor and the file."""
        path = tmp_path / "download-state.json"
        store = JsonCheckpointStore(path)
        store.put("A", FolderCheckpoint(folder_id="f1", offset=24))

        store.clear()

        assert store.get("A") is None
        assert not path.exists()

    def test_unreadable_state_starts_fresh(self, tmp_path):
        """A corrupt state file is ignored."""
        path = tmp_path / "download-state.json"
        path.write_text("not json")

        assert JsonCheckpointStore(path).get("A") is None


class TestArtifactStore:
    """Test path layout and listings."""

    def test_paths(self, store, tmp_path):
        """Artifacts live under the data and config dirs."""
        assert store.deviation_path("123456") == tmp_path / "data" / "deviations" / "123456.json"
        assert store.download_state_path.name == "download-state.json"
        assert store.exclusions_path.name == "excluded.json"
        assert store.parsed_characters_path.name == "parsed-characters.json"
        assert store.import_results_path.name == "import-results.json"
        assert store.mapping_config_path == tmp_path / "config" / "trait-mapping.json"

    def test_deviation_overwrite(self, store, deviation_factory):
        """Writing the same id twice replaces the file."""
        store.write_deviation(deviation_factory("123456", "old"))
        store.write_deviation(deviation_factory("123456", "new"))

        assert store.list_deviation_ids() == ["123456"]
        assert store.read_deviation("123456").description_html == "new"

    def test_iter_deviations_sorted_and_excluding(self, store, deviation_factory):
        """Deviations iterate in file-name order minus excluded ids."""
        for numeric_id in ["300000", "100000", "200000"]:
            store.write_deviation(deviation_factory(numeric_id))

        ids = [d.numeric_id for d in store.iter_deviations(exclude={"200000"})]
        assert ids == ["100000", "300000"]

    def test_no_exclusions_file(self, store):
        """A missing exclusions file means nothing is excluded."""
        assert store.load_exclusions() == []
