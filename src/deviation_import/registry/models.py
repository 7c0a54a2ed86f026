"""
Registry API payload models.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RegistryModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SpeciesNode(RegistryModel):
    id: str
    name: str
    community_id: str | None = None


class VariantNode(RegistryModel):
    id: str
    name: str
    species_id: str | None = None


class EnumValueNode(RegistryModel):
    id: str
    name: str
    order: int | None = None


class TraitNode(RegistryModel):
    id: str
    name: str
    value_type: str
    enum_values: list[EnumValueNode] = Field(default_factory=list)

    @property
    def is_enum(self) -> bool:
        return self.value_type.lower() == "enum"


class CharacterNode(RegistryModel):
    id: str
    name: str
    registry_id: str | None = None
    owner_id: str | None = None


class TraitValueInput(RegistryModel):
    trait_id: str
    value: str


class PendingOwnerInput(RegistryModel):
    """Owner on an external platform, linked once they join the registry."""

    provider: str = "DEVIANTART"
    provider_account_id: str


class CreateCharacterInput(RegistryModel):
    name: str
    registry_id: str = Field(description="Source numeric id, used for de-duplication")
    species_id: str
    species_variant_id: str
    trait_values: list[TraitValueInput] = Field(default_factory=list)
    pending_owner: PendingOwnerInput | None = None
    assign_to_self: bool = False
    visibility: str = "PUBLIC"
    trait_review_source: str = "IMPORT"
