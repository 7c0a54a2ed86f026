"""
Trait mapping engine: resolve parsed trait lines to registry trait/enum ids
and derive the overall variant from the highest rarity.

Resolution order per line (first match wins):

1. ignore patterns  -> dropped silently
2. composite rules  -> several fixed assignments, line consumed
3. rarity prefix stripped, remaining text looked up in the simple rules

Lines already resolved by exact-line rules during parsing skip all three.
Rules whose ids still hold the scaffold placeholder are never applied; the
line is reported as unmapped instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ..models import TODO_SENTINEL, MappedTrait, MappingConfig
from .description import RARITY_WORDS, ExactLineMatch


@dataclass(frozen=True)
class Resolved:
    """A rule target carrying real registry ids."""

    trait_id: str
    enum_value_id: str


class Unresolved:
    """A rule target still waiting for manual resolution."""

    _instance: Unresolved | None = None

    def __new__(cls) -> Unresolved:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = Unresolved()
RuleTarget = Resolved | Unresolved


def resolve_target(trait_id: str | None, enum_value_id: str | None) -> RuleTarget:
    """Turn a pair of config ids into a tagged target."""
    if not trait_id or not enum_value_id:
        return UNRESOLVED
    if trait_id == TODO_SENTINEL or enum_value_id == TODO_SENTINEL:
        return UNRESOLVED
    return Resolved(trait_id=trait_id, enum_value_id=enum_value_id)


def rule_key(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().lower()


_PARENTHETICAL_RE = re.compile(r"\s*\([^)]*\)\s*$")


def strip_parenthetical(text: str) -> str:
    """Drop a trailing "(...)" modifier: "Bell Collar (Gold)" -> "Bell Collar"."""
    return _PARENTHETICAL_RE.sub("", text).strip()


class RarityPrefixes:
    """Splits a leading rarity word off a trait line.

    Matching is case-insensitive and longest-first; the returned rarity uses
    the canonical spelling (as written in ``rarityOrder`` when present).
    """

    def __init__(self, prefixes: Iterable[str], canonical_order: Sequence[str] = ()):
        canonical = {rule_key(r): r for r in canonical_order}
        self._canonical: dict[str, str] = {}
        for prefix in prefixes:
            key = rule_key(prefix)
            if key and key not in self._canonical:
                self._canonical[key] = canonical.get(key, prefix.strip())
        for key, value in canonical.items():
            self._canonical.setdefault(key, value)

        alternation = "|".join(
            r"\s+".join(re.escape(word) for word in key.split(" "))
            for key in sorted(self._canonical, key=len, reverse=True)
        )
        self._pattern = re.compile(rf"^({alternation})(?=\s|$)\s*(.*)$", re.IGNORECASE) if alternation else None

    def split(self, line: str) -> tuple[str | None, str]:
        """Return (rarity or None, remaining trait text)."""
        text = line.strip()
        if self._pattern is None:
            return None, text
        match = self._pattern.match(text)
        if not match:
            return None, text
        return self._canonical[rule_key(match.group(1))], match.group(2).strip()


DEFAULT_PREFIXES = RarityPrefixes(RARITY_WORDS)


def extract_trait_and_rarity(line: str, prefixes: RarityPrefixes | None = None) -> tuple[str | None, str]:
    """Split ``"Very Rare Wings"`` into ``("Very Rare", "Wings")``."""
    return (prefixes or DEFAULT_PREFIXES).split(line)


@dataclass
class TraitMappingResult:
    mapped_traits: list[MappedTrait] = field(default_factory=list)
    unmapped_lines: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def unmapped(self, line: str, warning: str) -> None:
        if line not in self.unmapped_lines:
            self.unmapped_lines.append(line)
        self.warnings.append(warning)


@dataclass
class VariantDerivation:
    variant_id: str | None
    rarity: str | None


class TraitMapper:
    """
    Mapping engine bound to one loaded MappingConfig.

    All lookup tables and regexes are built once here, so mapping is linear
    in the number of lines.
    """

    def __init__(self, config: MappingConfig):
        self.config = config
        self.rarity_order = list(config.rarity_order)

        prefixes = config.rarity_prefixes or [*config.rarity_order, *RARITY_WORDS]
        self.prefixes = RarityPrefixes(prefixes, config.rarity_order)

        self._ignore = [re.compile(p, re.IGNORECASE) for p in config.ignore_patterns]
        self._composites = [
            (re.compile(rule.line_pattern, re.IGNORECASE), rule) for rule in config.composite_rules
        ]
        self._rules: dict[str, RuleTarget] = {
            rule_key(rule.pattern): resolve_target(rule.trait_id, rule.enum_value_id)
            for rule in config.rules
        }
        self._rank = {rule_key(r): i for i, r in enumerate(self.rarity_order)}
        self._variants = {rule_key(k): v for k, v in config.rarity_to_variant_id.items()}

    # =========================================================================
    # Lookup helpers
    # =========================================================================

    def lookup(self, trait_text: str) -> RuleTarget | None:
        """Simple-rule lookup with the trailing-parenthetical fallback."""
        target = self._rules.get(rule_key(trait_text))
        if target is not None:
            return target
        stripped = strip_parenthetical(trait_text)
        if stripped and stripped != trait_text:
            return self._rules.get(rule_key(stripped))
        return None

    def is_ignored(self, line: str) -> bool:
        return any(pattern.search(line) for pattern in self._ignore)

    def _group_rarity(self, match: re.Match[str], group_name: str | None) -> str | None:
        if not group_name or group_name not in match.re.groupindex:
            return None
        value = match.group(group_name)
        if not value:
            return None
        rarity, _ = self.prefixes.split(value)
        return rarity

    def _apply_composite(self, line: str) -> tuple[list[MappedTrait], bool] | None:
        for pattern, rule in self._composites:
            match = pattern.search(line)
            if not match:
                continue

            traits: list[MappedTrait] = []
            unresolved = False

            if rule.extractions:
                for ext in rule.extractions:
                    target = resolve_target(ext.trait_id, ext.enum_value_id)
                    if not isinstance(target, Resolved):
                        unresolved = True
                        continue
                    traits.append(MappedTrait(
                        trait_id=target.trait_id,
                        enum_value_id=target.enum_value_id,
                        rarity=ext.rarity or self._group_rarity(match, ext.group_name),
                        source_line=line,
                    ))
                return traits, unresolved

            # No extractions: each capture group is looked up as its own line
            for sub_line in match.groups():
                if not sub_line or not sub_line.strip():
                    continue
                rarity, text = self.prefixes.split(sub_line)
                target = self.lookup(text)
                if isinstance(target, Resolved):
                    traits.append(MappedTrait(
                        trait_id=target.trait_id,
                        enum_value_id=target.enum_value_id,
                        rarity=rarity,
                        source_line=line,
                    ))
                elif target is UNRESOLVED:
                    unresolved = True
            if traits or unresolved:
                return traits, unresolved
        return None

    # =========================================================================
    # Public API
    # =========================================================================

    def map_lines(
        self,
        lines: Iterable[str],
        exact_matches: Iterable[ExactLineMatch] = (),
    ) -> TraitMappingResult:
        """
        Resolve trait lines and exact-line matches to mapped traits.

        Args:
            lines: Normalized trait lines from the description parser
            exact_matches: Lines the parser already resolved verbatim

        Returns:
            TraitMappingResult; every line that is neither ignored nor fully
            resolved appears in ``unmapped_lines`` with a warning
        """
        result = TraitMappingResult()

        for line in lines:
            trimmed = line.strip()
            if not trimmed or self.is_ignored(trimmed):
                continue

            composite = self._apply_composite(trimmed)
            if composite is not None:
                traits, unresolved = composite
                result.mapped_traits.extend(traits)
                if unresolved:
                    result.unmapped(trimmed, f'Composite rule for "{trimmed}" has unresolved TODO ids')
                continue

            rarity, text = self.prefixes.split(trimmed)
            target = self.lookup(text)
            if isinstance(target, Resolved):
                result.mapped_traits.append(MappedTrait(
                    trait_id=target.trait_id,
                    enum_value_id=target.enum_value_id,
                    rarity=rarity,
                    source_line=trimmed,
                ))
            elif target is UNRESOLVED:
                result.unmapped(trimmed, f'Trait rule for "{text}" is still TODO: "{trimmed}"')
            else:
                result.unmapped(trimmed, f'Unmapped trait line: "{trimmed}"')

        for match in exact_matches:
            unresolved = False
            for mapping in match.mappings:
                target = resolve_target(mapping.trait_id, mapping.enum_value_id)
                if not isinstance(target, Resolved):
                    unresolved = True
                    continue
                result.mapped_traits.append(MappedTrait(
                    trait_id=target.trait_id,
                    enum_value_id=target.enum_value_id,
                    rarity=mapping.rarity,
                    source_line=match.line,
                ))
            if unresolved:
                result.unmapped(match.line, f'Exact-line rule for "{match.line}" has unresolved TODO ids')

        return result

    def derive_variant(self, traits: Iterable[MappedTrait]) -> VariantDerivation:
        """
        Pick the variant for the highest-ranked rarity among the traits.

        On equal rank the first trait to reach it is kept. Without any
        rarity-bearing trait, the lowest rarity (``rarityOrder[0]``) is used.
        An unresolved or missing variant id yields (None, None).
        """
        best_rank = -1
        best_rarity: str | None = None
        for trait in traits:
            if not trait.rarity:
                continue
            rank = self._rank.get(rule_key(trait.rarity), -1)
            if rank > best_rank:
                best_rank = rank
                best_rarity = self.rarity_order[rank]

        if best_rarity is None:
            if not self.rarity_order:
                return VariantDerivation(None, None)
            best_rarity = self.rarity_order[0]

        variant_id = self._variants.get(rule_key(best_rarity))
        if not variant_id or variant_id == TODO_SENTINEL:
            return VariantDerivation(None, None)
        return VariantDerivation(variant_id, best_rarity)

    def default_variant_id(self) -> str | None:
        """Variant of the lowest rarity, or None when unresolved."""
        if not self.rarity_order:
            return None
        variant_id = self._variants.get(rule_key(self.rarity_order[0]))
        if not variant_id or variant_id == TODO_SENTINEL:
            return None
        return variant_id
