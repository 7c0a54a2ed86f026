"""
File-backed storage for pipeline artifacts.

Each artifact is owned by exactly one stage; downstream stages only read it.
Writes go to a temp file first and are then renamed over the target, so an
interrupted process never leaves a half-written artifact behind.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Protocol, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from .exceptions import ArtifactError
from .models import (
    Deviation,
    DownloadState,
    ExclusionEntry,
    FolderCheckpoint,
    ImportResults,
    MappingConfig,
    ParsedCharacter,
)

logger = logging.getLogger("deviation-import.storage")

T = TypeVar("T")

DEVIATIONS_DIRNAME = "deviations"
DOWNLOAD_STATE_FILENAME = "download-state.json"
EXCLUSIONS_FILENAME = "excluded.json"
PARSED_CHARACTERS_FILENAME = "parsed-characters.json"
IMPORT_RESULTS_FILENAME = "import-results.json"
MAPPING_CONFIG_FILENAME = "trait-mapping.json"

_parsed_list = TypeAdapter(list[ParsedCharacter])
_exclusion_list = TypeAdapter(list[ExclusionEntry])


def _to_jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_to_jsonable(item) for item in data]
    return data


def write_json(file_path: Path, data: Any) -> None:
    """Write data to file atomically (write to temp, then rename).

    Args:
        file_path: Target file; parent directories are created as needed
        data: A pydantic model, a list of models, or plain JSON data
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = file_path.with_name(file_path.name + ".tmp")
    try:
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(_to_jsonable(data), f, indent=2, ensure_ascii=False)
            f.write("\n")
        temp_file.replace(file_path)
    except OSError as e:
        if temp_file.exists():
            temp_file.unlink()
        raise ArtifactError(f"Failed to write {file_path}: {e}") from e


def read_json(file_path: Path, adapter: type[T] | TypeAdapter[T]) -> T:
    """Read and validate a JSON artifact.

    Args:
        file_path: File to read
        adapter: Pydantic model class or TypeAdapter to validate with

    Raises:
        ArtifactError: If the file is missing, not JSON, or fails validation
    """
    try:
        raw = file_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ArtifactError(f"File not found: {file_path}") from None
    except OSError as e:
        raise ArtifactError(f"Failed to read {file_path}: {e}") from None

    try:
        if isinstance(adapter, TypeAdapter):
            return adapter.validate_json(raw)
        return adapter.model_validate_json(raw)  # type: ignore[attr-defined]
    except ValidationError as e:
        raise ArtifactError(f"Invalid content in {file_path}: {e}") from None


# ---------------------------------------------------------------------------
# Download checkpoints
# ---------------------------------------------------------------------------

class CheckpointStore(Protocol):
    """Keyed store of folder cursors (key = folder name)."""

    def get(self, key: str) -> FolderCheckpoint | None: ...

    def put(self, key: str, checkpoint: FolderCheckpoint) -> None: ...

    def clear(self) -> None: ...


class MemoryCheckpointStore:
    """In-process checkpoint store, used when nothing should be persisted."""

    def __init__(self) -> None:
        self._checkpoints: dict[str, FolderCheckpoint] = {}

    def get(self, key: str) -> FolderCheckpoint | None:
        return self._checkpoints.get(key)

    def put(self, key: str, checkpoint: FolderCheckpoint) -> None:
        self._checkpoints[key] = checkpoint

    def clear(self) -> None:
        self._checkpoints.clear()


class JsonCheckpointStore:
    """Checkpoint store persisted as the ``download-state.json`` document.

    Every ``put`` rewrites the whole file, which bounds crash loss to the
    page that was in flight.
    """

    def __init__(self, path: Path):
        self.path = path
        self._state = self._load()

    def _load(self) -> DownloadState:
        if not self.path.exists():
            return DownloadState()
        try:
            return read_json(self.path, DownloadState)
        except ArtifactError as e:
            logger.warning(f"Ignoring unreadable download state: {e}")
            return DownloadState()

    def get(self, key: str) -> FolderCheckpoint | None:
        return self._state.folders.get(key)

    def put(self, key: str, checkpoint: FolderCheckpoint) -> None:
        self._state.folders[key] = checkpoint
        self._state.last_updated = datetime.now()
        write_json(self.path, self._state)

    def clear(self) -> None:
        self._state = DownloadState()
        if self.path.exists():
            self.path.unlink()


# ---------------------------------------------------------------------------
# Artifact store
# ---------------------------------------------------------------------------

class ArtifactStore:
    """Resolves and reads/writes every artifact under a data and config dir."""

    def __init__(self, data_dir: str | Path = "data", config_dir: str | Path = "config"):
        self.data_dir = Path(data_dir)
        self.config_dir = Path(config_dir)

    @property
    def deviations_dir(self) -> Path:
        return self.data_dir / DEVIATIONS_DIRNAME

    @property
    def download_state_path(self) -> Path:
        return self.data_dir / DOWNLOAD_STATE_FILENAME

    @property
    def exclusions_path(self) -> Path:
        return self.data_dir / EXCLUSIONS_FILENAME

    @property
    def parsed_characters_path(self) -> Path:
        return self.data_dir / PARSED_CHARACTERS_FILENAME

    @property
    def import_results_path(self) -> Path:
        return self.data_dir / IMPORT_RESULTS_FILENAME

    @property
    def mapping_config_path(self) -> Path:
        return self.config_dir / MAPPING_CONFIG_FILENAME

    def checkpoints(self) -> JsonCheckpointStore:
        return JsonCheckpointStore(self.download_state_path)

    # Deviations

    def deviation_path(self, numeric_id: str) -> Path:
        return self.deviations_dir / f"{numeric_id}.json"

    def write_deviation(self, deviation: Deviation) -> Path:
        """Write (or overwrite) one deviation file keyed by its numeric id."""
        path = self.deviation_path(deviation.numeric_id)
        write_json(path, deviation)
        return path

    def read_deviation(self, numeric_id: str) -> Deviation:
        return read_json(self.deviation_path(numeric_id), Deviation)

    def list_deviation_ids(self) -> list[str]:
        """Numeric ids of all downloaded deviations, sorted by file name."""
        if not self.deviations_dir.is_dir():
            return []
        return sorted(p.stem for p in self.deviations_dir.glob("*.json"))

    def iter_deviations(self, exclude: set[str] | None = None) -> Iterator[Deviation]:
        """Yield downloaded deviations in file-name order, skipping excluded ids."""
        exclude = exclude or set()
        for numeric_id in self.list_deviation_ids():
            if numeric_id in exclude:
                continue
            yield self.read_deviation(numeric_id)

    # Exclusions

    def load_exclusions(self) -> list[ExclusionEntry]:
        if not self.exclusions_path.exists():
            return []
        return read_json(self.exclusions_path, _exclusion_list)

    def save_exclusions(self, entries: list[ExclusionEntry]) -> None:
        write_json(self.exclusions_path, entries)

    # Mapping config

    def load_mapping_config(self, path: Path | None = None) -> MappingConfig:
        return read_json(path or self.mapping_config_path, MappingConfig)

    def save_mapping_config(self, config: MappingConfig, path: Path | None = None) -> Path:
        target = path or self.mapping_config_path
        write_json(target, config)
        return target

    # Parsed characters

    def load_parsed_characters(self) -> list[ParsedCharacter]:
        return read_json(self.parsed_characters_path, _parsed_list)

    def save_parsed_characters(self, characters: list[ParsedCharacter]) -> Path:
        write_json(self.parsed_characters_path, characters)
        return self.parsed_characters_path

    # Import results

    def load_import_results(self) -> ImportResults:
        return read_json(self.import_results_path, ImportResults)

    def save_import_results(self, results: ImportResults) -> Path:
        write_json(self.import_results_path, results)
        return self.import_results_path
