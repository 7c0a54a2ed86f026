"""
GraphQL documents consumed from the character registry API.
"""

LOGIN = """
mutation Login($input: LoginInput!) {
  login(input: $input) {
    accessToken
    refreshToken
  }
}
"""

SPECIES_BY_COMMUNITY = """
query SpeciesByCommunity($communityId: ID!, $first: Int!) {
  speciesByCommunity(communityId: $communityId, first: $first) {
    nodes {
      id
      name
      communityId
    }
  }
}
"""

SPECIES_VARIANTS_BY_SPECIES = """
query SpeciesVariantsBySpecies($speciesId: ID!, $first: Int!) {
  speciesVariantsBySpecies(speciesId: $speciesId, first: $first) {
    nodes {
      id
      name
      speciesId
    }
  }
}
"""

TRAITS_BY_SPECIES = """
query TraitsBySpecies($speciesId: ID!, $first: Int) {
  traitsBySpecies(speciesId: $speciesId, first: $first) {
    nodes {
      id
      name
      valueType
      enumValues {
        id
        name
        order
      }
    }
    totalCount
    hasNextPage
  }
}
"""

CHARACTERS = """
query Characters($filters: CharacterFiltersInput) {
  characters(filters: $filters) {
    characters {
      id
      name
      registryId
      ownerId
    }
    total
    hasMore
  }
}
"""

CREATE_CHARACTER = """
mutation CreateCharacter($input: CreateCharacterInput!) {
  createCharacter(input: $input) {
    id
    name
    registryId
    ownerId
  }
}
"""
