"""Effect manager CLI: list, edit and hide transformations against a running API.

Usage:
    python scripts/manage_effects.py list --locale zh --hidden
    python scripts/manage_effects.py create "Sepia" "Give the photo a warm sepia tone" --category style
    python scripts/manage_effects.py update custom_1700000000000_ab12cd34 "Sepia" "Stronger sepia"
    python scripts/manage_effects.py delete custom_1700000000000_ab12cd34
    python scripts/manage_effects.py hide watercolor
    python scripts/manage_effects.py patch watercolor --title "Soft Watercolor"
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from api.schemas.prompts import OverridePatch, TransformationCategory  # noqa: E402
from core.config import get_settings  # noqa: E402
from core.exceptions import AppException  # noqa: E402
from services.transformations import TransformationService  # noqa: E402

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
logger = logging.getLogger(__name__)

CATEGORY_CHOICES = [c.value for c in TransformationCategory]


def print_items(items) -> None:
    if not items:
        print("No effects.")
        return

    width = max(len(item.key) for item in items)
    for item in items:
        flags = []
        if item.is_builtin:
            flags.append("builtin")
        if item.is_overridden:
            flags.append("overridden")
        if item.is_hidden:
            flags.append("hidden")
        category = item.display_category.value if item.display_category else "-"
        print(f"{item.key:<{width}}  {item.title}  [{category}] {','.join(flags)}")


async def run(args) -> int:
    async with await TransformationService.connect(settings) as service:
        if args.command == "list":
            items = await service.list_transformations(
                locale=args.locale,
                include_hidden=args.hidden,
                search=args.search,
                category=args.category,
            )
            if service.view.error:
                print(f"Warning: showing cached effects ({service.view.error})")
            print_items(items)

        elif args.command == "create":
            key = await service.create_custom(
                args.title,
                args.prompt,
                icon=args.icon,
                category=args.category,
                zh_title=args.zh_title,
                zh_prompt=args.zh_prompt,
            )
            print(f"Created {key}")

        elif args.command == "update":
            await service.update_custom(
                args.key,
                args.title,
                args.prompt,
                icon=args.icon,
                category=args.category,
                zh_title=args.zh_title,
                zh_prompt=args.zh_prompt,
            )
            print(f"Updated {args.key}")

        elif args.command == "delete":
            await service.delete_custom(args.key)
            print(f"Deleted {args.key}")

        elif args.command == "clear":
            if not args.yes:
                print("Refusing to clear custom effects without --yes")
                return 1
            await service.clear_custom()
            print("Cleared all custom effects")

        elif args.command == "hide":
            if await service.hide_builtin(args.key):
                print(f"Hid {args.key}")
            else:
                print(f"{args.key} is not a built-in effect, nothing to hide")

        elif args.command == "restore":
            await service.restore_builtin(args.key)
            print(f"Restored {args.key}")

        elif args.command == "patch":
            patch = OverridePatch(
                title=args.title,
                prompt=args.prompt,
                icon=args.icon,
                category=args.category,
            )
            merged = await service.patch_builtin_override(args.key, patch)
            if merged is None:
                print(f"{args.key} is not a built-in effect, nothing to patch")
            else:
                print(f"Override for {args.key}: {merged.model_dump(exclude_none=True)}")

        elif args.command == "unpatch":
            await service.remove_builtin_override(args.key)
            print(f"Removed override for {args.key}")

        elif args.command == "clear-overrides":
            await service.clear_overrides()
            print("Cleared hidden effects and overrides")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage image effects")
    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="List merged effects")
    list_cmd.add_argument("--locale", default=None, help="Locale code, e.g. en or zh")
    list_cmd.add_argument("--hidden", action="store_true", help="Include hidden built-ins")
    list_cmd.add_argument("--search", default=None, help="Filter by title or prompt text")
    list_cmd.add_argument("--category", choices=CATEGORY_CHOICES, default=None)

    for name, help_text in (("create", "Add a custom effect"), ("update", "Replace a custom effect")):
        cmd = commands.add_parser(name, help=help_text)
        if name == "update":
            cmd.add_argument("key")
        cmd.add_argument("title")
        cmd.add_argument("prompt")
        cmd.add_argument("--icon", default=None, help="Material Symbols icon name")
        cmd.add_argument("--category", choices=CATEGORY_CHOICES, default=None)
        cmd.add_argument("--zh-title", default=None)
        cmd.add_argument("--zh-prompt", default=None)

    commands.add_parser("delete", help="Delete a custom effect").add_argument("key")

    clear_cmd = commands.add_parser("clear", help="Delete every custom effect")
    clear_cmd.add_argument("--yes", action="store_true", help="Confirm clearing")

    commands.add_parser("hide", help="Hide a built-in effect").add_argument("key")
    commands.add_parser("restore", help="Show a hidden built-in again").add_argument("key")

    patch_cmd = commands.add_parser("patch", help="Override fields of a built-in effect")
    patch_cmd.add_argument("key")
    patch_cmd.add_argument("--title", default=None)
    patch_cmd.add_argument("--prompt", default=None)
    patch_cmd.add_argument("--icon", default=None)
    patch_cmd.add_argument("--category", choices=CATEGORY_CHOICES, default=None)

    commands.add_parser("unpatch", help="Drop the override of a built-in").add_argument("key")
    commands.add_parser("clear-overrides", help="Show all built-ins and drop every override")

    return parser


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except AppException as e:
        print(f"Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
