"""
Parse stage: turn downloaded deviations into ParsedCharacter records.

Reads every deviation file (minus exclusions), runs the description parser
and the trait mapper, applies the config's badge/override extras, and
replaces ``parsed-characters.json`` in one write.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .models import (
    Deviation,
    MappedTrait,
    MappingConfig,
    ParsedCharacter,
    TODO_SENTINEL,
)
from .parsing.description import parse_description
from .parsing.mapper import Resolved, TraitMapper, resolve_target
from .storage import ArtifactStore

logger = logging.getLogger("deviation-import.parse")


def dedupe_traits(traits: list[MappedTrait]) -> list[MappedTrait]:
    """Drop repeated (trait, value) pairs, keeping the first occurrence."""
    seen: set[tuple[str, str]] = set()
    result: list[MappedTrait] = []
    for trait in traits:
        value = f"enum:{trait.enum_value_id}" if trait.enum_value_id is not None else f"text:{trait.text_value}"
        key = (trait.trait_id, value)
        if key in seen:
            continue
        seen.add(key)
        result.append(trait)
    return result


class DeviationParser:
    """Parses deviations against one loaded MappingConfig."""

    def __init__(self, config: MappingConfig):
        self.config = config
        self.mapper = TraitMapper(config)
        self._description_badges = [
            (re.compile(badge.pattern, re.IGNORECASE), badge) for badge in config.description_badges
        ]
        self._overrides = {o.numeric_id: o.traits for o in config.deviation_overrides}
        badges = config.category_badges
        self._retired_patterns = [p.lower() for p in badges.retired_patterns] if badges else []

    def parse(self, deviation: Deviation) -> ParsedCharacter:
        """Parse and map one deviation. Deterministic for a given config."""
        config = self.config
        parsed = parse_description(deviation.description_html, deviation.title, config.exact_line_rules)
        mapping = self.mapper.map_lines(parsed.trait_lines, parsed.exact_line_matches)

        traits = list(mapping.mapped_traits)
        warnings = [*parsed.warnings, *mapping.warnings]

        for tvt in config.text_value_traits:
            if tvt.source == "deviationUrl" and tvt.trait_id != TODO_SENTINEL:
                traits.append(MappedTrait(
                    trait_id=tvt.trait_id,
                    text_value=deviation.url,
                    source_line=deviation.url,
                ))

        traits.extend(self._category_badges(parsed.category, warnings))

        for override in self._overrides.get(deviation.numeric_id, []):
            target = resolve_target(override.trait_id, override.enum_value_id)
            if isinstance(target, Resolved):
                traits.append(MappedTrait(
                    trait_id=target.trait_id,
                    enum_value_id=target.enum_value_id,
                    rarity=override.rarity,
                    source_line=f"Deviation override ({deviation.numeric_id})",
                ))

        for pattern, badge in self._description_badges:
            target = resolve_target(badge.trait_id, badge.enum_value_id)
            if isinstance(target, Resolved) and pattern.search(deviation.description_html):
                traits.append(MappedTrait(
                    trait_id=target.trait_id,
                    enum_value_id=target.enum_value_id,
                    source_line=f"Description match: {badge.pattern}",
                ))

        traits = dedupe_traits(traits)
        variant = self.mapper.derive_variant(traits)

        return ParsedCharacter(
            numeric_id=deviation.numeric_id,
            name=parsed.character_name or deviation.title,
            owner_da_username=parsed.owner_username,
            category=parsed.category,
            folder_name=deviation.folder_name,
            url=deviation.url,
            mapped_traits=traits,
            unmapped_lines=mapping.unmapped_lines,
            warnings=warnings,
            derived_variant_id=variant.variant_id,
            derived_rarity=variant.rarity,
        )

    def _category_badges(self, category: str, warnings: list[str]) -> list[MappedTrait]:
        badges = self.config.category_badges
        if badges is None:
            return []

        traits: list[MappedTrait] = []
        target = resolve_target(badges.trait_id, badges.mappings.get(category))
        if isinstance(target, Resolved):
            traits.append(MappedTrait(
                trait_id=target.trait_id,
                enum_value_id=target.enum_value_id,
                source_line=f"Category: {category}",
            ))
        else:
            warnings.append(f'No category badge mapping for category: "{category}"')

        category_lower = category.lower()
        if any(p in category_lower for p in self._retired_patterns):
            retired = resolve_target(badges.trait_id, badges.retired_badge_enum_id)
            if isinstance(retired, Resolved):
                traits.append(MappedTrait(
                    trait_id=retired.trait_id,
                    enum_value_id=retired.enum_value_id,
                    source_line=f"Category: {category} (retired)",
                ))
        return traits


@dataclass
class ParseSummary:
    total: int
    excluded: int
    fully_mapped: int
    with_unmapped: int
    without_owner: int
    mapped_traits: int
    unmapped_lines: int
    output_path: Path


def warn_unresolved_config(config: MappingConfig) -> None:
    """Log how much of the config still holds scaffold placeholders."""
    todo_rules = config.todo_rule_count()
    if todo_rules:
        logger.warning(f"{todo_rules} rules still have TODO placeholders. These traits won't be mapped.")
    todo_variants = config.todo_variant_count()
    if todo_variants:
        logger.warning(f"{todo_variants} rarity-to-variant mappings still have TODO placeholders.")


def parse_deviations(store: ArtifactStore, mapping_path: Path | None = None) -> ParseSummary:
    """
    Run the parse stage over every downloaded deviation.

    Args:
        store: Artifact store holding deviations, exclusions and the output
        mapping_path: Mapping config to use; defaults to the store's config path

    Returns:
        ParseSummary with aggregate counts

    Raises:
        ArtifactError: If the mapping config or a deviation file is unreadable
    """
    path = mapping_path or store.mapping_config_path
    logger.info(f"Loading mapping config from {path}...")
    config = store.load_mapping_config(path)
    warn_unresolved_config(config)

    excluded_ids = {e.numeric_id for e in store.load_exclusions()}
    all_ids = store.list_deviation_ids()
    excluded = sum(1 for i in all_ids if i in excluded_ids)
    if excluded:
        logger.info(
            f"Found {len(all_ids)} downloaded deviations "
            f"({excluded} excluded, parsing {len(all_ids) - excluded})."
        )
    else:
        logger.info(f"Found {len(all_ids)} downloaded deviations.")

    parser = DeviationParser(config)
    characters = [parser.parse(d) for d in store.iter_deviations(exclude=excluded_ids)]
    output_path = store.save_parsed_characters(characters)

    summary = ParseSummary(
        total=len(characters),
        excluded=excluded,
        fully_mapped=sum(1 for c in characters if c.is_fully_mapped),
        with_unmapped=sum(1 for c in characters if not c.is_fully_mapped),
        without_owner=sum(1 for c in characters if not c.owner_da_username),
        mapped_traits=sum(len(c.mapped_traits) for c in characters),
        unmapped_lines=sum(len(c.unmapped_lines) for c in characters),
        output_path=output_path,
    )

    logger.info("Parse results:")
    logger.info(f"  Total characters: {summary.total}")
    logger.info(f"  Fully mapped: {summary.fully_mapped}")
    logger.info(f"  With unmapped traits: {summary.with_unmapped}")
    logger.info(f"  Without owner: {summary.without_owner}")
    logger.info(f"  Total mapped traits: {summary.mapped_traits}")
    logger.info(f"  Total unmapped lines: {summary.unmapped_lines}")
    logger.info(f"Saved to {output_path}")
    return summary
