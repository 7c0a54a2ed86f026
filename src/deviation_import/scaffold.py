"""
One-shot bootstrap of ``trait-mapping.json``.

Collects every distinct trait text seen in the downloaded deviations,
matches it against the species' enum values by name, and writes a config
skeleton where everything unmatched holds the TODO placeholder.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .exceptions import ConfigurationError
from .models import TODO_SENTINEL, MappingConfig, SimpleRule
from .parsing.description import RARITY_WORDS, parse_description
from .parsing.mapper import extract_trait_and_rarity, rule_key
from .registry.client import RegistryClient
from .registry.models import TraitNode
from .storage import ArtifactStore

logger = logging.getLogger("deviation-import.scaffold")

DEFAULT_RARITY_ORDER = ["Common", "Uncommon", "Rare", "Very Rare", "Legendary", "Exclusive"]
DEFAULT_IGNORE_PATTERNS = [
    "Resale Value",
    "Trades:",
    "Gifts:",
    r"^\$\d+",
    "^MYO",
    "Design by",
]
UNMATCHED_PREVIEW = 20


@dataclass
class ScaffoldResult:
    config: MappingConfig
    output_path: Path
    matched: list[str] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)


def collect_trait_texts(store: ArtifactStore) -> set[str]:
    """Distinct rarity-stripped trait texts across all downloaded deviations."""
    texts: set[str] = set()
    for deviation in store.iter_deviations():
        parsed = parse_description(deviation.description_html, deviation.title)
        for line in parsed.trait_lines:
            _, text = extract_trait_and_rarity(line)
            if text:
                texts.add(text)
    return texts


def build_mapping_config(
    species_id: str,
    community_id: str,
    variants: dict[str, str],
    traits: list[TraitNode],
    trait_texts: set[str],
) -> tuple[MappingConfig, list[str], list[str]]:
    """
    Build the config skeleton.

    Args:
        variants: Variant name -> variant id
        traits: Species traits with their enum values
        trait_texts: Observed trait texts

    Returns:
        (config, matched texts, unmatched texts)
    """
    variant_lookup = {rule_key(name): vid for name, vid in variants.items()}
    rarity_to_variant = {
        rarity: variant_lookup.get(rule_key(rarity), TODO_SENTINEL) for rarity in DEFAULT_RARITY_ORDER
    }

    enum_lookup: dict[str, tuple[str, str]] = {}
    for trait in traits:
        if not trait.is_enum:
            continue
        for value in trait.enum_values:
            enum_lookup.setdefault(rule_key(value.name), (trait.id, value.id))

    rules: list[SimpleRule] = []
    matched: list[str] = []
    unmatched: list[str] = []
    for text in sorted(trait_texts):
        ids = enum_lookup.get(rule_key(text))
        if ids is not None:
            matched.append(text)
            rules.append(SimpleRule(pattern=text, trait_id=ids[0], enum_value_id=ids[1]))
        else:
            unmatched.append(text)
            rules.append(SimpleRule(pattern=text, trait_id=TODO_SENTINEL, enum_value_id=TODO_SENTINEL))

    config = MappingConfig(
        species_id=species_id,
        community_id=community_id,
        rarity_order=list(DEFAULT_RARITY_ORDER),
        rarity_prefixes=sorted(dict.fromkeys([*DEFAULT_RARITY_ORDER, *RARITY_WORDS]), key=len, reverse=True),
        rarity_to_variant_id=rarity_to_variant,
        rules=rules,
        ignore_patterns=list(DEFAULT_IGNORE_PATTERNS),
    )
    return config, matched, unmatched


def log_trait_catalog(traits: list[TraitNode]) -> None:
    logger.info("Available registry traits and enum values:")
    for trait in traits:
        if not trait.is_enum:
            continue
        logger.info(f"  {trait.name} ({trait.id}):")
        for value in trait.enum_values:
            logger.info(f"    - {value.name} ({value.id})")


async def scaffold_mapping(
    client: RegistryClient,
    store: ArtifactStore,
    species_name: str,
    community_id: str,
    email: str,
    password: str,
    output_path: Path | None = None,
) -> ScaffoldResult:
    """
    Log in, resolve the species, and write a mapping config skeleton.

    Raises:
        ConfigurationError: If the species is not found in the community
    """
    await client.login(email, password)

    logger.info(f'Looking up species "{species_name}" in community {community_id}...')
    species = await client.get_species_by_community(community_id)
    target = next((s for s in species if s.name.lower() == species_name.lower()), None)
    if target is None:
        available = ", ".join(s.name for s in species)
        raise ConfigurationError(f'Species "{species_name}" not found. Available: {available}')

    logger.info("Fetching species variants...")
    variants = await client.get_variants_by_species(target.id)
    logger.info(f"  Found {len(variants)} variants: {', '.join(v.name for v in variants)}")

    logger.info("Fetching traits...")
    traits = await client.get_traits_by_species(target.id)
    logger.info(f"  Found {len(traits)} traits")

    logger.info("Scanning downloaded deviations for trait patterns...")
    texts = collect_trait_texts(store)
    logger.info(f"  Found {len(texts)} unique trait texts")

    config, matched, unmatched = build_mapping_config(
        target.id,
        community_id,
        {v.name: v.id for v in variants},
        traits,
        texts,
    )
    path = store.save_mapping_config(config, output_path)

    logger.info(f"Mapping template written to {path}")
    logger.info(f"  Auto-matched: {len(matched)}")
    logger.info(f"  Need manual mapping (TODO): {len(unmatched)}")
    if unmatched:
        logger.info("Unmatched trait texts:")
        for text in unmatched[:UNMATCHED_PREVIEW]:
            logger.info(f'  - "{text}"')
        if len(unmatched) > UNMATCHED_PREVIEW:
            logger.info(f"  ... and {len(unmatched) - UNMATCHED_PREVIEW} more")

    log_trait_catalog(traits)
    return ScaffoldResult(config=config, output_path=path, matched=matched, unmatched=unmatched)
