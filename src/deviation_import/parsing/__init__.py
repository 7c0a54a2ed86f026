"""
Description parsing and trait mapping. Pure functions, no I/O.
"""

from .description import (
    ExactLineMatch,
    ParsedDescription,
    normalize_trait_line,
    parse_description,
)
from .mapper import (
    UNRESOLVED,
    RarityPrefixes,
    Resolved,
    TraitMapper,
    TraitMappingResult,
    VariantDerivation,
    extract_trait_and_rarity,
    resolve_target,
)

__all__ = [
    "ExactLineMatch",
    "ParsedDescription",
    "normalize_trait_line",
    "parse_description",
    "UNRESOLVED",
    "RarityPrefixes",
    "Resolved",
    "TraitMapper",
    "TraitMappingResult",
    "VariantDerivation",
    "extract_trait_and_rarity",
    "resolve_target",
]
