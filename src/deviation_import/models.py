"""
Data models for the pipeline's JSON artifacts.

Every artifact is written with camelCase keys so the files stay compatible
with hand-edited mapping configs and with earlier runs of the tool.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Placeholder written by the scaffolder for anything it could not resolve.
TODO_SENTINEL = "TODO"


class ArtifactModel(BaseModel):
    """Base model for persisted artifacts (camelCase on disk, snake_case in code)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Download stage
# ---------------------------------------------------------------------------

class Deviation(ArtifactModel):
    """One downloaded gallery item. Immutable once written."""

    numeric_id: str = Field(description="Stable numeric id taken from the item URL")
    deviation_id: str = Field(description="Platform item id (UUID)")
    url: str
    title: str
    author_username: str
    description_html: str = Field(default="", description="Long description markup, empty if the fetch failed")
    folder_name: str
    published_time: str | None = None
    thumbnail_url: str | None = None


class FolderCheckpoint(ArtifactModel):
    """Resumable cursor for one gallery folder."""

    folder_id: str
    offset: int = Field(default=0, ge=0)
    complete: bool = False


class DownloadState(ArtifactModel):
    """Per-folder download cursors, rewritten after every fetched page."""

    folders: dict[str, FolderCheckpoint] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=datetime.now)


class ExclusionEntry(ArtifactModel):
    """A deviation the parse stage must skip."""

    numeric_id: str
    reason: str
    excluded_at: datetime = Field(default_factory=datetime.now)


# ---------------------------------------------------------------------------
# Mapping config
# ---------------------------------------------------------------------------

class SimpleRule(ArtifactModel):
    """Trait text (rarity prefix already stripped) -> destination ids."""

    pattern: str
    trait_id: str
    enum_value_id: str


class CompositeExtraction(ArtifactModel):
    """One assignment produced by a composite rule."""

    group_name: str | None = Field(default=None, description="Named group the rarity is read from")
    trait_id: str
    enum_value_id: str
    rarity: str | None = None


class CompositeRule(ArtifactModel):
    """Whole-line regex producing several trait assignments."""

    line_pattern: str
    extractions: list[CompositeExtraction] = Field(default_factory=list)

    @field_validator("line_pattern")
    @classmethod
    def _check_regex(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid composite linePattern {value!r}: {e}") from e
        return value


class ExactLineMapping(ArtifactModel):
    trait_id: str
    enum_value_id: str
    rarity: str | None = None


class ExactLineRule(ArtifactModel):
    """Verbatim (case-insensitive) line override that bypasses rarity parsing."""

    line: str
    mappings: list[ExactLineMapping] = Field(default_factory=list)


class TextValueTrait(ArtifactModel):
    trait_id: str
    source: Literal["deviationUrl"]


class CategoryBadges(ArtifactModel):
    """Badge trait assigned from the parsed category line."""

    trait_id: str
    mappings: dict[str, str] = Field(default_factory=dict)
    retired_badge_enum_id: str | None = None
    retired_patterns: list[str] = Field(default_factory=list)


class DescriptionBadge(ArtifactModel):
    pattern: str
    trait_id: str
    enum_value_id: str


class DeviationOverride(ArtifactModel):
    numeric_id: str
    traits: list[ExactLineMapping] = Field(default_factory=list)


class MappingConfig(ArtifactModel):
    """User-edited rule database translating trait text to registry ids."""

    species_id: str
    community_id: str
    rarity_order: list[str] = Field(description="Rarities from lowest (index 0) to highest")
    rarity_prefixes: list[str] = Field(default_factory=list)
    rarity_to_variant_id: dict[str, str] = Field(default_factory=dict)
    rules: list[SimpleRule] = Field(default_factory=list)
    composite_rules: list[CompositeRule] = Field(default_factory=list)
    ignore_patterns: list[str] = Field(default_factory=list)
    exact_line_rules: list[ExactLineRule] = Field(default_factory=list)
    text_value_traits: list[TextValueTrait] = Field(default_factory=list)
    category_badges: CategoryBadges | None = None
    description_badges: list[DescriptionBadge] = Field(default_factory=list)
    deviation_overrides: list[DeviationOverride] = Field(default_factory=list)

    @field_validator("ignore_patterns")
    @classmethod
    def _check_ignore_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid ignore pattern {pattern!r}: {e}") from e
        return value

    def todo_rule_count(self) -> int:
        """Number of simple rules still holding the TODO placeholder."""
        return sum(
            1 for r in self.rules
            if r.trait_id == TODO_SENTINEL or r.enum_value_id == TODO_SENTINEL
        )

    def todo_variant_count(self) -> int:
        """Number of rarity->variant entries still holding the TODO placeholder."""
        return sum(1 for v in self.rarity_to_variant_id.values() if v == TODO_SENTINEL)


# ---------------------------------------------------------------------------
# Parse stage
# ---------------------------------------------------------------------------

class MappedTrait(ArtifactModel):
    """A resolved trait assignment. Exactly one of enum_value_id/text_value is set."""

    trait_id: str
    enum_value_id: str | None = None
    text_value: str | None = None
    rarity: str | None = None
    source_line: str

    @property
    def value(self) -> str:
        return self.enum_value_id if self.enum_value_id is not None else (self.text_value or "")


class ParsedCharacter(ArtifactModel):
    numeric_id: str
    name: str
    owner_da_username: str = ""
    category: str = ""
    folder_name: str
    url: str
    mapped_traits: list[MappedTrait] = Field(default_factory=list)
    unmapped_lines: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    derived_variant_id: str | None = None
    derived_rarity: str | None = None

    @property
    def is_fully_mapped(self) -> bool:
        return not self.unmapped_lines


# ---------------------------------------------------------------------------
# Import stage
# ---------------------------------------------------------------------------

class ImportStatus(str, Enum):
    CREATED = "created"
    SKIPPED_EXISTING = "skipped_existing"
    SKIPPED_UNMAPPED = "skipped_unmapped"
    FAILED = "failed"


class ImportResultEntry(ArtifactModel):
    numeric_id: str
    name: str
    status: ImportStatus
    character_id: str | None = None
    error: str | None = None


class ImportResults(ArtifactModel):
    """Audit trail of one import run."""

    timestamp: datetime = Field(default_factory=datetime.now)
    species_id: str
    total_processed: int = 0
    created: int = 0
    skipped_existing: int = 0
    skipped_unmapped: int = 0
    failed: int = 0
    entries: list[ImportResultEntry] = Field(default_factory=list)

    def record(self, entry: ImportResultEntry) -> None:
        """Append an entry and bump the matching counter."""
        self.entries.append(entry)
        self.total_processed += 1
        if entry.status is ImportStatus.CREATED:
            self.created += 1
        elif entry.status is ImportStatus.SKIPPED_EXISTING:
            self.skipped_existing += 1
        elif entry.status is ImportStatus.SKIPPED_UNMAPPED:
            self.skipped_unmapped += 1
        else:
            self.failed += 1
