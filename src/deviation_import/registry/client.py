"""
Client for the character registry's GraphQL endpoint.

Two failure modes are kept apart for callers: ``RegistryHTTPError`` for
transport problems and non-2xx statuses, ``RegistryGraphQLError`` for
application errors returned under a success status.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..exceptions import RegistryGraphQLError, RegistryHTTPError
from . import queries
from .models import (
    CharacterNode,
    CreateCharacterInput,
    SpeciesNode,
    TraitNode,
    VariantNode,
)

logger = logging.getLogger("deviation-import.registry")

DEFAULT_TIMEOUT = 30.0
PAGE_SIZE = 100
NODE_LIMIT = 100


class RegistryClient:
    """
    Authenticated GraphQL client.

    Attributes:
        endpoint: GraphQL endpoint URL
        token: Bearer token set by ``login``
    """

    def __init__(self, endpoint: str, http_client: httpx.AsyncClient | None = None):
        self.endpoint = endpoint
        self.token: str | None = None
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
            self._owns_client = True
        return self._client

    async def request(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Execute one GraphQL operation.

        Returns:
            The ``data`` object of the response

        Raises:
            RegistryHTTPError: Transport failure or non-2xx status
            RegistryGraphQLError: ``errors`` present in a 2xx response
        """
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self.http.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                headers=headers,
            )
        except httpx.RequestError as e:
            raise RegistryHTTPError(f"Failed to reach registry at {self.endpoint}: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        errors = body.get("errors") or []
        messages = [str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors]

        if not response.is_success:
            detail = ", ".join(messages) if messages else response.reason_phrase
            raise RegistryHTTPError(
                f"HTTP error: {response.status_code} - {detail}",
                status_code=response.status_code,
            )

        if messages:
            raise RegistryGraphQLError(messages)

        data = body.get("data")
        if data is None:
            raise RegistryGraphQLError(["GraphQL response missing data"])
        return data

    async def login(self, email: str, password: str) -> str:
        """Log in and keep the access token for subsequent requests."""
        data = await self.request(queries.LOGIN, {"input": {"email": email, "password": password}})
        self.token = data["login"]["accessToken"]
        logger.info("Logged in successfully")
        return self.token

    async def get_species_by_community(self, community_id: str) -> list[SpeciesNode]:
        data = await self.request(
            queries.SPECIES_BY_COMMUNITY, {"communityId": community_id, "first": NODE_LIMIT}
        )
        return [SpeciesNode.model_validate(n) for n in data["speciesByCommunity"]["nodes"]]

    async def get_variants_by_species(self, species_id: str) -> list[VariantNode]:
        data = await self.request(
            queries.SPECIES_VARIANTS_BY_SPECIES, {"speciesId": species_id, "first": NODE_LIMIT}
        )
        return [VariantNode.model_validate(n) for n in data["speciesVariantsBySpecies"]["nodes"]]

    async def get_traits_by_species(self, species_id: str) -> list[TraitNode]:
        data = await self.request(
            queries.TRAITS_BY_SPECIES, {"speciesId": species_id, "first": NODE_LIMIT}
        )
        return [TraitNode.model_validate(n) for n in data["traitsBySpecies"]["nodes"]]

    async def get_all_characters_for_species(self, species_id: str) -> list[CharacterNode]:
        """Page through every character of a species until ``hasMore`` is false."""
        characters: list[CharacterNode] = []
        offset = 0
        while True:
            data = await self.request(
                queries.CHARACTERS,
                {"filters": {"speciesId": species_id, "limit": PAGE_SIZE, "offset": offset}},
            )
            page = data["characters"]
            nodes = page.get("characters") or []
            characters.extend(CharacterNode.model_validate(n) for n in nodes)
            if not page.get("hasMore") or not nodes:
                break
            offset += PAGE_SIZE
        logger.debug(f"Fetched {len(characters)} existing characters for species {species_id}")
        return characters

    async def create_character(self, character: CreateCharacterInput) -> CharacterNode:
        payload = character.model_dump(by_alias=True, exclude_none=True)
        data = await self.request(queries.CREATE_CHARACTER, {"input": payload})
        try:
            return CharacterNode.model_validate(data.get("createCharacter"))
        except ValidationError as e:
            raise RegistryGraphQLError([f"Malformed createCharacter response: {e}"]) from e
