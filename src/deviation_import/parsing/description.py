"""
Parse deviation description markup into a character name, owner, category
and trait-line candidates.

Descriptions follow one loose house format::

    Character Name
    Category: Pillowing Batch 3
    Artist: <link>
    Current Owner: <link to profile>
    Features:
    Common Eyes
    Rare Mane
    [Resale Value: $50]

but are hand-written, so lines arrive with bullet tokens, misspelled
rarities and words glued together. The fixes here are deliberately narrow
and closed-vocabulary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from ..models import ExactLineMapping, ExactLineRule

# Recognized rarity words; longer spellings first so "Very Rare" wins over "Rare".
RARITY_WORDS: tuple[str, ...] = (
    "Very Rare",
    "Uncommon",
    "Common",
    "Rare",
    "Legendary",
    "Exclusive",
    "Special",
)
_RARITY_ALT = r"very\s+rare|uncommon|common|rare|legendary|exclusive|special"

RARITY_PREFIX_RE = re.compile(rf"^(?:{_RARITY_ALT})\s+\S", re.IGNORECASE)
LABEL_RE = re.compile(r"^(?:category|artist|current\s+owner|owner|features)\b", re.IGNORECASE)
FEATURES_RE = re.compile(r"^features\b\s*:?\s*(.*)$", re.IGNORECASE)
CATEGORY_RE = re.compile(r"^category\s*:\s*(.*)$", re.IGNORECASE)
HEADING_RE = re.compile(r"^#+\s*")

# Both label spellings used over the years.
OWNER_LABEL_RE = re.compile(r"current\s+owner|owned\s+by", re.IGNORECASE)
# Both profile URL shapes: https://name.deviantart.com and https://www.deviantart.com/name
PROFILE_LINK_RES = (
    re.compile(
        r"""href=["']https?://(?!www\.)([A-Za-z0-9][A-Za-z0-9-]*)\.deviantart\.com/?["']""",
        re.IGNORECASE,
    ),
    re.compile(
        r"""href=["']https?://(?:www\.)?deviantart\.com/([A-Za-z0-9_-]+)/?["']""",
        re.IGNORECASE,
    ),
)
OWNER_TEXT_RE = re.compile(r"(?:current\s+)?owner\s*:\s*(\S+)", re.IGNORECASE)

# Trait sections end at bracketed resale/trade lines or the house footer.
FOOTER_RES = (
    re.compile(r"^\["),
    re.compile(r"^pillowings\s+are\b", re.IGNORECASE),
)

# Normalization tables
BULLET_PREFIX_RE = re.compile(r"^(?:(?::[a-z0-9_]+:|[•●◦▪▸►»·*–—-]|:)\s*)+", re.IGNORECASE)
MISSPELLINGS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^(?:very\s*rate|vey\s+rare|verry\s+rare|very\s*rair)\b", re.IGNORECASE), "Very Rare"),
    (re.compile(r"^(?:uncommom|uncomon|unommon|uncommen)\b", re.IGNORECASE), "Uncommon"),
    (re.compile(r"^(?:commom|comon|commen)\b", re.IGNORECASE), "Common"),
)
GLUED_RARITY_RE = re.compile(rf"^((?i:{_RARITY_ALT}))(?=[A-Z])")
STANDARD_WITH_RARITY_RE = re.compile(rf"^(standard)\s+({_RARITY_ALT})\s+(.+)$", re.IGNORECASE)
STANDARD_RE = re.compile(r"^(standard)\s+(.+)$", re.IGNORECASE)

BLOCK_TAGS = ["p", "div", "li", "tr", "blockquote", "h1", "h2", "h3", "h4", "h5", "h6"]


@dataclass
class ExactLineMatch:
    """A trait line resolved verbatim by an exact-line rule."""

    line: str
    mappings: list[ExactLineMapping]


@dataclass
class ParsedDescription:
    character_name: str
    owner_username: str = ""
    category: str = ""
    trait_lines: list[str] = field(default_factory=list)
    exact_line_matches: list[ExactLineMatch] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _clean_line(line: str) -> str:
    return re.sub(r"\s+", " ", line.replace("\u00a0", " ")).strip()


def exact_line_key(line: str) -> str:
    """Lookup key for exact-line rules: whitespace-collapsed, lowercased."""
    return _clean_line(line).lower()


def flatten_markup(html: str) -> list[str]:
    """Flatten description markup to non-empty logical lines.

    ``<br>`` and block-element boundaries become line breaks; non-breaking
    spaces and runs of whitespace collapse to single spaces.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(BLOCK_TAGS):
        tag.insert_before("\n")
        tag.insert_after("\n")

    lines = (_clean_line(line) for line in soup.get_text().split("\n"))
    return [line for line in lines if line]


def normalize_trait_line(line: str) -> str:
    """Apply the closed set of trait-line repairs.

    - strip leading bullet tokens (``:bulletred:``, ``•``, ``-``) and stray colons
    - fix known rarity misspellings ("Very Rate", "Uncomon", "Comon", ...)
    - split a rarity glued to the next capitalized word ("CommonEyes")
    - reorder "Standard <Rarity> X" to "<Rarity> Standard X"; a bare
      "Standard X" becomes "Common Standard X"
    """
    text = BULLET_PREFIX_RE.sub("", line).strip()

    for pattern, replacement in MISSPELLINGS:
        text = pattern.sub(replacement, text, count=1)

    text = GLUED_RARITY_RE.sub(r"\1 ", text, count=1)

    match = STANDARD_WITH_RARITY_RE.match(text)
    if match:
        text = f"{match.group(2)} {match.group(1)} {match.group(3)}"
    else:
        match = STANDARD_RE.match(text)
        if match:
            text = f"Common {match.group(1)} {match.group(2)}"

    return text.strip()


def has_rarity_prefix(line: str) -> bool:
    return RARITY_PREFIX_RE.match(line) is not None


def _extract_name(lines: list[str], fallback: str) -> str:
    name = ""
    for line in lines:
        if LABEL_RE.match(line):
            break
        name = HEADING_RE.sub("", line).strip()
        break
    return name or fallback


def _extract_owner(html: str, lines: list[str]) -> str:
    label = OWNER_LABEL_RE.search(html or "")
    if label:
        after = html[label.start():]
        best: tuple[int, str] | None = None
        for pattern in PROFILE_LINK_RES:
            match = pattern.search(after)
            if match and (best is None or match.start() < best[0]):
                best = (match.start(), match.group(1))
        if best is not None:
            return best[1]

    for line in lines:
        match = OWNER_TEXT_RE.search(line)
        if match:
            return match.group(1).lstrip("@")
    return ""


def _extract_category(lines: list[str]) -> str:
    for line in lines:
        match = CATEGORY_RE.match(line)
        if match:
            return match.group(1).strip()
    return ""


def _is_footer(line: str) -> bool:
    return any(pattern.match(line) for pattern in FOOTER_RES)


def parse_description(
    html: str,
    fallback_title: str,
    exact_line_rules: list[ExactLineRule] | None = None,
) -> ParsedDescription:
    """
    Parse one description. Pure and deterministic; performs no I/O.

    Args:
        html: Description markup (may be empty)
        fallback_title: Used as the character name when none is found
        exact_line_rules: Verbatim line overrides, checked before normalization

    Returns:
        ParsedDescription with trait-line candidates, exact-line matches and
        per-line warnings
    """
    exact_lookup = {exact_line_key(rule.line): rule for rule in exact_line_rules or []}

    lines = flatten_markup(html)
    parsed = ParsedDescription(
        character_name=_extract_name(lines, fallback_title),
        owner_username=_extract_owner(html, lines),
        category=_extract_category(lines),
    )

    def consider(candidate: str, from_label_line: bool = False) -> None:
        rule = exact_lookup.get(exact_line_key(candidate))
        if rule is not None:
            parsed.exact_line_matches.append(ExactLineMatch(line=candidate, mappings=list(rule.mappings)))
            return
        if from_label_line and not has_rarity_prefix(candidate):
            return
        normalized = normalize_trait_line(candidate)
        if has_rarity_prefix(normalized):
            parsed.trait_lines.append(normalized)
        else:
            parsed.warnings.append(f'Unparseable trait line: "{candidate}"')

    in_features = False
    for line in lines:
        if not in_features:
            match = FEATURES_RE.match(line)
            if match:
                in_features = True
                trailing = match.group(1).strip()
                if trailing:
                    consider(trailing, from_label_line=True)
            continue

        if _is_footer(line):
            break
        consider(line)

    if not in_features:
        parsed.warnings.append("No features section found in description")

    return parsed
