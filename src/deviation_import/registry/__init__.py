"""
Destination character registry (GraphQL) client.
"""

from .client import RegistryClient
from .models import (
    CharacterNode,
    CreateCharacterInput,
    PendingOwnerInput,
    SpeciesNode,
    TraitNode,
    TraitValueInput,
    VariantNode,
)

__all__ = [
    "RegistryClient",
    "CharacterNode",
    "CreateCharacterInput",
    "PendingOwnerInput",
    "SpeciesNode",
    "TraitNode",
    "TraitValueInput",
    "VariantNode",
]
