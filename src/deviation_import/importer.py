"""
Import stage: create parsed characters in the registry, idempotently.

Every character ends in exactly one status:

- ``skipped_unmapped``: unmapped lines remain and skip-unmapped is on
- ``skipped_existing``: its numeric id is already a registryId in the
  registry, or the create call reported a uniqueness conflict
- ``created``: the create call succeeded
- ``failed``: any other error; the batch carries on

Re-running over the same parsed file creates nothing new.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .exceptions import RegistryError
from .models import (
    ImportResultEntry,
    ImportResults,
    ImportStatus,
    MappingConfig,
    ParsedCharacter,
)
from .parsing.mapper import TraitMapper
from .registry.client import RegistryClient
from .registry.models import CreateCharacterInput, PendingOwnerInput, TraitValueInput
from .storage import ArtifactStore

logger = logging.getLogger("deviation-import.import")

PREVIEW_LIMIT = 10
PENDING_OWNER_PROVIDER = "DEVIANTART"
CONFLICT_MARKERS = ("unique", "already exists")


@dataclass
class PreflightSummary:
    """Counts computed before any mutation."""

    total: int
    fully_mapped: int
    with_unmapped: int
    to_import: int
    skip_unmapped: bool
    existing_characters: int = 0
    would_create: int = 0
    would_skip_existing: int = 0


class ConfirmationPolicy(Protocol):
    def __call__(self, summary: PreflightSummary) -> bool: ...


def always_proceed(summary: PreflightSummary) -> bool:
    return True


def never_proceed(summary: PreflightSummary) -> bool:
    return False


def prompt_confirm(summary: PreflightSummary) -> bool:
    """Ask on the terminal; only an explicit "y" proceeds."""
    answer = input(f"\nProceed with importing {summary.would_create} characters? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def is_conflict_error(message: str) -> bool:
    lower = message.lower()
    return any(marker in lower for marker in CONFLICT_MARKERS)


class CharacterImporter:
    """
    Imports ParsedCharacter records into one species of the registry.

    Attributes:
        client: Registry client (logged in by ``run``)
        config: Mapping config (species id, default variant)
        skip_unmapped: Skip characters that still have unmapped lines
        confirm: Policy consulted after pre-flight, before any write
    """

    def __init__(
        self,
        client: RegistryClient,
        config: MappingConfig,
        skip_unmapped: bool = True,
        confirm: ConfirmationPolicy = prompt_confirm,
    ):
        self.client = client
        self.config = config
        self.skip_unmapped = skip_unmapped
        self.confirm = confirm
        self._default_variant_id = TraitMapper(config).default_variant_id()

    # =========================================================================
    # Pre-flight
    # =========================================================================

    def importable(self, characters: list[ParsedCharacter]) -> list[ParsedCharacter]:
        if self.skip_unmapped:
            return [c for c in characters if c.is_fully_mapped]
        return list(characters)

    def preflight(self, characters: list[ParsedCharacter]) -> PreflightSummary:
        fully_mapped = sum(1 for c in characters if c.is_fully_mapped)
        return PreflightSummary(
            total=len(characters),
            fully_mapped=fully_mapped,
            with_unmapped=len(characters) - fully_mapped,
            to_import=len(self.importable(characters)),
            skip_unmapped=self.skip_unmapped,
        )

    def log_preflight(self, summary: PreflightSummary) -> None:
        logger.info("Import summary:")
        logger.info(f"  Total parsed: {summary.total}")
        logger.info(f"  Fully mapped: {summary.fully_mapped}")
        logger.info(f"  With unmapped traits: {summary.with_unmapped}")
        suffix = " (skipping unmapped)" if summary.skip_unmapped else ""
        logger.info(f"  To import: {summary.to_import}{suffix}")

    def log_preview(self, characters: list[ParsedCharacter]) -> None:
        importable = self.importable(characters)
        logger.info("=== DRY RUN: no changes will be made ===")
        for char in importable[:PREVIEW_LIMIT]:
            logger.info(f"  {char.numeric_id}: {char.name}")
            logger.info(f"    Owner: {char.owner_da_username or '(none)'}")
            logger.info(f"    Variant: {char.derived_rarity or 'default'}")
            logger.info(f"    Traits: {len(char.mapped_traits)}")
        if len(importable) > PREVIEW_LIMIT:
            logger.info(f"  ... and {len(importable) - PREVIEW_LIMIT} more")

    async def build_existing_index(self) -> dict[str, str]:
        """Map registryId -> character id for every existing character of the species."""
        logger.info("Building existing character index...")
        existing = await self.client.get_all_characters_for_species(self.config.species_id)
        index = {c.registry_id: c.id for c in existing if c.registry_id}
        logger.info(f"  Found {len(existing)} existing characters ({len(index)} with registryId)")
        return index

    # =========================================================================
    # Writes
    # =========================================================================

    def build_input(self, char: ParsedCharacter) -> CreateCharacterInput | None:
        """Create payload for one character, or None if it has no variant to use."""
        variant_id = char.derived_variant_id or self._default_variant_id
        if not variant_id:
            return None
        return CreateCharacterInput(
            name=char.name,
            registry_id=char.numeric_id,
            species_id=self.config.species_id,
            species_variant_id=variant_id,
            trait_values=[TraitValueInput(trait_id=t.trait_id, value=t.value) for t in char.mapped_traits],
            pending_owner=(
                PendingOwnerInput(provider=PENDING_OWNER_PROVIDER, provider_account_id=char.owner_da_username)
                if char.owner_da_username
                else None
            ),
        )

    async def import_character(self, char: ParsedCharacter, existing: dict[str, str]) -> ImportResultEntry:
        """Decide and perform the import of one character. Never raises RegistryError."""
        entry = ImportResultEntry(numeric_id=char.numeric_id, name=char.name, status=ImportStatus.FAILED)

        if self.skip_unmapped and not char.is_fully_mapped:
            entry.status = ImportStatus.SKIPPED_UNMAPPED
            return entry

        if char.numeric_id in existing:
            entry.status = ImportStatus.SKIPPED_EXISTING
            entry.character_id = existing[char.numeric_id]
            return entry

        payload = self.build_input(char)
        if payload is None:
            entry.error = "No species variant resolved for this character or for the default rarity"
            logger.warning(f"Failed to create {char.numeric_id} ({char.name}): {entry.error}")
            return entry

        try:
            created = await self.client.create_character(payload)
        except RegistryError as e:
            message = str(e)
            if is_conflict_error(message):
                entry.status = ImportStatus.SKIPPED_EXISTING
            else:
                entry.error = message
                logger.warning(f"Failed to create {char.numeric_id} ({char.name}): {message}")
            return entry

        entry.status = ImportStatus.CREATED
        entry.character_id = created.id
        existing[char.numeric_id] = created.id
        return entry

    async def run(
        self,
        characters: list[ParsedCharacter],
        email: str,
        password: str,
        dry_run: bool = False,
    ) -> ImportResults | None:
        """
        Pre-flight, confirm, then import every character.

        Returns:
            ImportResults, or None for a dry run or a declined confirmation
        """
        summary = self.preflight(characters)
        self.log_preflight(summary)

        if dry_run:
            self.log_preview(characters)
            return None

        await self.client.login(email, password)
        existing = await self.build_existing_index()

        importable = self.importable(characters)
        summary.existing_characters = len(existing)
        summary.would_skip_existing = sum(1 for c in importable if c.numeric_id in existing)
        summary.would_create = len(importable) - summary.would_skip_existing
        logger.info(f"  Would create: {summary.would_create}")
        logger.info(f"  Would skip (existing): {summary.would_skip_existing}")

        if not self.confirm(summary):
            logger.info("Import cancelled.")
            return None

        results = ImportResults(species_id=self.config.species_id)
        for index, char in enumerate(characters, start=1):
            results.record(await self.import_character(char, existing))
            if index % 50 == 0:
                logger.info(f"  Importing: {index}/{len(characters)}")

        logger.info("Import complete:")
        logger.info(f"  Created: {results.created}")
        logger.info(f"  Skipped (existing): {results.skipped_existing}")
        logger.info(f"  Skipped (unmapped): {results.skipped_unmapped}")
        logger.info(f"  Failed: {results.failed}")
        return results


async def run_import(
    store: ArtifactStore,
    client: RegistryClient,
    email: str,
    password: str,
    mapping_path: Path | None = None,
    dry_run: bool = False,
    skip_unmapped: bool = True,
    confirm: ConfirmationPolicy = prompt_confirm,
) -> ImportResults | None:
    """Load artifacts, run the importer and persist the results file."""
    logger.info("Loading parsed characters...")
    characters = store.load_parsed_characters()
    config = store.load_mapping_config(mapping_path)

    importer = CharacterImporter(client, config, skip_unmapped=skip_unmapped, confirm=confirm)
    results = await importer.run(characters, email, password, dry_run=dry_run)
    if results is not None:
        path = store.save_import_results(results)
        logger.info(f"Results saved to {path}")
    return results
