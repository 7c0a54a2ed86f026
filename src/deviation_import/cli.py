"""
Command line entry point for the deviation import pipeline.

Usage:
    deviation-import download --username USER --folders "Folder A" "Folder B"
    deviation-import parse
    deviation-import import --dry-run
    deviation-import report --type parsed
    deviation-import scaffold-mapping --species-name NAME --community-id ID
    deviation-import exclude --id 123456789 --reason "Duplicate upload"
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import logging
import sys
from pathlib import Path

from .config import Settings, load_settings
from .exceptions import (
    ArtifactError,
    ConfigurationError,
    DeviationImportError,
    RegistryError,
    SourceError,
)
from .exclusions import DEFAULT_REASON, add_exclusion, list_exclusions, remove_exclusion
from .importer import always_proceed, prompt_confirm, run_import
from .pipeline import parse_deviations
from .registry.client import RegistryClient
from .report import build_import_report, build_parsed_report
from .scaffold import scaffold_mapping
from .source.client import DeviantArtClient
from .source.downloader import GalleryDownloader
from .storage import ArtifactStore

logger = logging.getLogger("deviation-import")

EXIT_CONFIG_ERROR = 1
EXIT_REMOTE_ERROR = 2


# =============================================================================
# Subcommands
# =============================================================================

async def _download(args: argparse.Namespace, settings: Settings, store: ArtifactStore) -> int:
    client_id, client_secret = settings.require_source_credentials()

    checkpoints = store.checkpoints()
    if args.fresh:
        logger.info("Discarding saved download progress (--fresh).")
        checkpoints.clear()

    async with DeviantArtClient(client_id, client_secret, interval_ms=settings.rate_limit_ms) as client:
        downloader = GalleryDownloader(client, store, checkpoints)
        summary = await downloader.run(args.username, args.folders, limit=args.limit)

    logger.info(f"Saved {summary.total_saved} deviations to {store.deviations_dir}")
    return 0


def _parse(args: argparse.Namespace, settings: Settings, store: ArtifactStore) -> int:
    parse_deviations(store, args.mapping)
    return 0


async def _import(args: argparse.Namespace, settings: Settings, store: ArtifactStore) -> int:
    email, password = ("", "") if args.dry_run else settings.require_registry_credentials()
    confirm = always_proceed if args.force else prompt_confirm

    async with RegistryClient(settings.api_url) as client:
        await run_import(
            store,
            client,
            email,
            password,
            mapping_path=args.mapping,
            dry_run=args.dry_run,
            skip_unmapped=not args.no_skip_unmapped,
            confirm=confirm,
        )
    return 0


def _report(args: argparse.Namespace, settings: Settings, store: ArtifactStore) -> int:
    if args.type == "import":
        report = build_import_report(store.load_import_results())
    else:
        report = build_parsed_report(store.load_parsed_characters())
    print(report.format())
    return 0


async def _scaffold(args: argparse.Namespace, settings: Settings, store: ArtifactStore) -> int:
    email, password = settings.require_registry_credentials()
    async with RegistryClient(settings.api_url) as client:
        await scaffold_mapping(
            client,
            store,
            args.species_name,
            args.community_id,
            email,
            password,
            output_path=args.output,
        )
    return 0


def _exclude(args: argparse.Namespace, settings: Settings, store: ArtifactStore) -> int:
    if args.list:
        entries = list_exclusions(store)
        if not entries:
            print("No exclusions.")
        for entry in entries:
            print(f"{entry.numeric_id}  {entry.excluded_at.isoformat()}  {entry.reason}")
        return 0

    if args.remove:
        remove_exclusion(store, args.remove)
        return 0

    if args.id:
        add_exclusion(store, args.id, args.reason)
        return 0

    raise ConfigurationError("exclude needs one of --id, --remove or --list")


# =============================================================================
# Argument parsing
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deviation-import",
        description="Import character designs from a DeviantArt gallery into the character registry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Download two folders, resuming any earlier run
  deviation-import download --username someuser --folders "Masterlist" "MYOs"

  # Re-parse everything against config/trait-mapping.json
  deviation-import parse

  # Preview the import without touching the registry
  deviation-import import --dry-run
        """,
    )
    parser.add_argument("--data-dir", type=Path, help="Artifact directory (default: ./data)")
    parser.add_argument("--config-dir", type=Path, help="Mapping config directory (default: ./config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    download = sub.add_parser("download", help="Download gallery folders")
    download.add_argument("--username", required=True, help="Gallery owner")
    download.add_argument("--folders", nargs="+", required=True, help="Folder names to download")
    download.add_argument("--client-id", help="DeviantArt OAuth client id")
    download.add_argument("--client-secret", help="DeviantArt OAuth client secret")
    download.add_argument("--rate-limit", type=int, help="Milliseconds between API calls (default: 1000)")
    download.add_argument("--limit", type=int, default=0, help="Stop after N deviations (0 = unlimited)")
    download.add_argument("--fresh", action="store_true", help="Discard saved progress and start over")

    parse = sub.add_parser("parse", help="Parse downloaded deviations into characters")
    parse.add_argument("--mapping", type=Path, help="Path to trait-mapping.json")

    imp = sub.add_parser("import", help="Create parsed characters in the registry")
    imp.add_argument("--api-url", help="Registry GraphQL endpoint")
    imp.add_argument("--email", help="Registry admin email")
    imp.add_argument("--password", help="Registry admin password")
    imp.add_argument("--mapping", type=Path, help="Path to trait-mapping.json")
    imp.add_argument("--dry-run", action="store_true", help="Show what would be imported without changes")
    imp.add_argument("--force", action="store_true", help="Skip the confirmation prompt")
    imp.add_argument(
        "--no-skip-unmapped",
        action="store_true",
        help="Also import characters that still have unmapped trait lines",
    )

    report = sub.add_parser("report", help="Summarize parse or import results")
    report.add_argument("--type", choices=["parsed", "import"], default="parsed", help="Report to show")

    scaffold = sub.add_parser("scaffold-mapping", help="Write a trait-mapping.json skeleton")
    scaffold.add_argument("--species-name", required=True, help="Species name in the registry")
    scaffold.add_argument("--community-id", required=True, help="Community owning the species")
    scaffold.add_argument("--api-url", help="Registry GraphQL endpoint")
    scaffold.add_argument("--email", help="Registry admin email")
    scaffold.add_argument("--password", help="Registry admin password")
    scaffold.add_argument("--output", type=Path, help="Output path (default: config/trait-mapping.json)")

    exclude = sub.add_parser("exclude", help="Manage deviations skipped by the parse stage")
    exclude.add_argument("--id", help="Numeric id to exclude")
    exclude.add_argument("--reason", default=DEFAULT_REASON, help="Why the deviation is excluded")
    exclude.add_argument("--remove", metavar="ID", help="Numeric id to un-exclude")
    exclude.add_argument("--list", action="store_true", help="List current exclusions")

    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Flags given on the command line win over environment values."""
    overrides = {
        "data_dir": args.data_dir,
        "config_dir": args.config_dir,
        "client_id": getattr(args, "client_id", None),
        "client_secret": getattr(args, "client_secret", None),
        "rate_limit_ms": getattr(args, "rate_limit", None),
        "api_url": getattr(args, "api_url", None),
        "email": getattr(args, "email", None),
        "password": getattr(args, "password", None),
    }
    return settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})


COMMANDS = {
    "download": _download,
    "parse": _parse,
    "import": _import,
    "report": _report,
    "scaffold-mapping": _scaffold,
    "exclude": _exclude,
}


def run(argv: list[str] | None = None) -> int:
    """Run one subcommand and return its exit status."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    try:
        settings = apply_overrides(load_settings(), args)
        store = ArtifactStore(settings.data_dir, settings.config_dir)
        handler = COMMANDS[args.command]
        if inspect.iscoroutinefunction(handler):
            return asyncio.run(handler(args, settings, store))
        return handler(args, settings, store)
    except (ConfigurationError, ArtifactError) as e:
        logger.error(f"Error: {e}")
        return EXIT_CONFIG_ERROR
    except (SourceError, RegistryError) as e:
        logger.error(f"Fatal: {e}")
        return EXIT_REMOTE_ERROR
    except DeviationImportError as e:
        logger.error(f"Error: {e}")
        return EXIT_CONFIG_ERROR


def main() -> None:
    """Console script entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
