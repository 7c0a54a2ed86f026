"""
Pytest configuration and fixtures for deviation-import tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path to allow importing deviation_import
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from deviation_import.models import (  # noqa: E402
    Deviation,
    MappedTrait,
    MappingConfig,
    ParsedCharacter,
    SimpleRule,
)
from deviation_import.storage import ArtifactStore  # noqa: E402

RARITY_ORDER = ["Common", "Uncommon", "Rare", "Very Rare", "Legendary", "Exclusive"]


@pytest.fixture
def mapping_config() -> MappingConfig:
    """A small, fully resolved mapping config."""
    return MappingConfig(
        species_id="species-1",
        community_id="community-1",
        rarity_order=list(RARITY_ORDER),
        rarity_to_variant_id={
            "Common": "var-common",
            "Uncommon": "var-uncommon",
            "Rare": "var-rare",
            "Very Rare": "var-very-rare",
            "Legendary": "var-legendary",
            "Exclusive": "var-exclusive",
        },
        rules=[
            SimpleRule(pattern="Eyes", trait_id="T1", enum_value_id="E1"),
            SimpleRule(pattern="Mane", trait_id="T2", enum_value_id="E2"),
            SimpleRule(pattern="Bell Collar", trait_id="T3", enum_value_id="E3"),
            SimpleRule(pattern="Wings", trait_id="T4", enum_value_id="E4"),
        ],
        ignore_patterns=[r"^\["],
    )


@pytest.fixture
def store(tmp_path: Path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "data", tmp_path / "config")


def make_deviation(numeric_id: str = "123456789", description_html: str = "", **overrides) -> Deviation:
    """Build a Deviation with sensible defaults."""
    values = dict(
        numeric_id=numeric_id,
        deviation_id=f"uuid-{numeric_id}",
        url=f"https://www.deviantart.com/artist/art/Pillowing-{numeric_id}",
        title=f"Pillowing {numeric_id}",
        author_username="artist",
        description_html=description_html,
        folder_name="Masterlist",
    )
    values.update(overrides)
    return Deviation(**values)


def make_character(numeric_id: str = "123456789", unmapped: list[str] | None = None, **overrides) -> ParsedCharacter:
    """Build a ParsedCharacter with one mapped trait."""
    values = dict(
        numeric_id=numeric_id,
        name=f"Character {numeric_id}",
        owner_da_username="owner1",
        folder_name="Masterlist",
        url=f"https://www.deviantart.com/artist/art/Pillowing-{numeric_id}",
        mapped_traits=[MappedTrait(trait_id="T1", enum_value_id="E1", rarity="Common", source_line="Common Eyes")],
        unmapped_lines=unmapped or [],
        derived_variant_id="var-common",
        derived_rarity="Common",
    )
    values.update(overrides)
    return ParsedCharacter(**values)


@pytest.fixture
def deviation_factory():
    return make_deviation


@pytest.fixture
def character_factory():
    return make_character
