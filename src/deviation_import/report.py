"""
Read-only reports over the parse and import artifacts.
"""

from __future__ import annotations

from collections import Counter

from pydantic import BaseModel, Field

from .models import ImportResultEntry, ImportResults, ImportStatus, ParsedCharacter

TOP_UNMAPPED_LIMIT = 30
NO_RARITY_LABEL = "(none)"


class UnmappedLineCount(BaseModel):
    line: str
    count: int


class ParsedReport(BaseModel):
    """Aggregates over parsed-characters.json."""

    total: int = Field(description="Number of parsed characters")
    fully_mapped: int = Field(description="Characters with no unmapped lines")
    with_unmapped: int = Field(description="Characters with at least one unmapped line")
    without_owner: int = Field(description="Characters with no parsed owner")
    without_variant: int = Field(description="Characters whose variant needs manual resolution")
    rarity_distribution: dict[str, int] = Field(default_factory=dict)
    folder_distribution: dict[str, int] = Field(default_factory=dict)
    top_unmapped: list[UnmappedLineCount] = Field(default_factory=list)
    distinct_unmapped: int = Field(default=0, description="Distinct unmapped line texts")

    def format(self) -> str:
        """Format the report as a readable text block."""
        lines: list[str] = ["=== Parse Report ==="]
        lines.append(f"Total characters: {self.total}")
        lines.append(f"Fully mapped: {self.fully_mapped}")
        lines.append(f"With unmapped traits: {self.with_unmapped}")
        lines.append(f"Without owner: {self.without_owner}")
        lines.append(f"Without variant: {self.without_variant}")
        lines.append("")

        lines.append("Rarity distribution:")
        for rarity, count in self.rarity_distribution.items():
            lines.append(f"  {rarity}: {count}")
        lines.append("")

        lines.append("Folder distribution:")
        for folder, count in self.folder_distribution.items():
            lines.append(f"  {folder}: {count}")

        if self.top_unmapped:
            lines.append("")
            lines.append("Top unmapped trait lines (by frequency):")
            for item in self.top_unmapped:
                lines.append(f'  {item.count}x "{item.line}"')
            hidden = self.distinct_unmapped - len(self.top_unmapped)
            if hidden > 0:
                lines.append(f"  ... and {hidden} more unique unmapped lines")

        return "\n".join(lines)


class ImportReportSummary(BaseModel):
    """Run summary plus every failed entry of import-results.json."""

    results: ImportResults
    failures: list[ImportResultEntry] = Field(default_factory=list)

    def format(self) -> str:
        r = self.results
        lines: list[str] = ["=== Import Report ==="]
        lines.append(f"Timestamp: {r.timestamp.isoformat()}")
        lines.append(f"Species ID: {r.species_id}")
        lines.append(f"Total processed: {r.total_processed}")
        lines.append(f"Created: {r.created}")
        lines.append(f"Skipped (existing): {r.skipped_existing}")
        lines.append(f"Skipped (unmapped): {r.skipped_unmapped}")
        lines.append(f"Failed: {r.failed}")

        if self.failures:
            lines.append("")
            lines.append("Failures:")
            for f in self.failures:
                lines.append(f"  {f.numeric_id} ({f.name}): {f.error}")

        return "\n".join(lines)


def build_parsed_report(characters: list[ParsedCharacter], top_n: int = TOP_UNMAPPED_LIMIT) -> ParsedReport:
    """Aggregate parsed characters. Ties in unmapped frequency keep first-seen order."""
    rarity = Counter(c.derived_rarity or NO_RARITY_LABEL for c in characters)
    folders = Counter(c.folder_name for c in characters)
    unmapped = Counter(line for c in characters for line in c.unmapped_lines)

    fully_mapped = sum(1 for c in characters if c.is_fully_mapped)
    return ParsedReport(
        total=len(characters),
        fully_mapped=fully_mapped,
        with_unmapped=len(characters) - fully_mapped,
        without_owner=sum(1 for c in characters if not c.owner_da_username),
        without_variant=sum(1 for c in characters if not c.derived_variant_id),
        rarity_distribution=dict(sorted(rarity.items())),
        folder_distribution=dict(sorted(folders.items())),
        top_unmapped=[UnmappedLineCount(line=line, count=count) for line, count in unmapped.most_common(top_n)],
        distinct_unmapped=len(unmapped),
    )


def build_import_report(results: ImportResults) -> ImportReportSummary:
    failures = [e for e in results.entries if e.status is ImportStatus.FAILED]
    return ImportReportSummary(results=results, failures=failures)
