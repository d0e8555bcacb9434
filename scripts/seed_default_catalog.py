"""Seed script: write the built-in effects into the default prompt catalog.

Usage:
    python scripts/seed_default_catalog.py              # Incremental: add missing built-ins only
    python scripts/seed_default_catalog.py --force      # Replace the whole default catalog
    python scripts/seed_default_catalog.py --dry-run    # Show what would change
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from api.schemas.prompts import CatalogName  # noqa: E402
from core.config import get_settings  # noqa: E402
from services.builtin_catalog import build_seed_document  # noqa: E402
from services.prompt_store import PromptCatalogStore  # noqa: E402

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
logger = logging.getLogger(__name__)


async def main(args) -> None:
    """Main entry point.

    Default mode is incremental: entries already in the default catalog
    (including hand edits) are preserved. Use --force to reset it.
    """
    prompts_dir = args.prompts_dir or settings.prompts_dir
    store = PromptCatalogStore(
        Path(prompts_dir) / settings.default_catalog_file,
        Path(prompts_dir) / settings.custom_catalog_file,
    )

    existing = await store.read_catalog(CatalogName.DEFAULT)
    document, added = build_seed_document(existing, force=args.force)

    if not added and not args.force:
        print(f"Default catalog already up to date ({len(existing)} entries).")
        return

    if args.dry_run:
        print(f"Would write {len(document)} entries to {store.path_for(CatalogName.DEFAULT)}")
        for key in added:
            print(f"  + {key}")
        return

    await store.seed_default(document)
    if args.force:
        print(f"Force: wrote {len(document)} built-in effects.")
    else:
        print(f"Seeded {len(added)} new built-in effects (incremental).")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the default prompt catalog")
    parser.add_argument(
        "--force",
        action="store_true",
        help="WARNING: Replace the whole default catalog (drops entries added by hand)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print what would be written without touching the file",
    )
    parser.add_argument(
        "--prompts-dir",
        default=None,
        help="Directory holding the catalog files (defaults to PROMPTS_DIR)",
    )
    args = parser.parse_args()

    asyncio.run(main(args))
