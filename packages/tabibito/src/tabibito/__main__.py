from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from devkit.config import load_settings
from tabibito.catalog import get_post_type_info, get_region_info
from tabibito.context import AppContext, build_app_context
from tabibito.models import Region
from tabibito.storage.repository import filter_timeline


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tabibito", description="Manage local Tabibito data.")
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("export", help="print a JSON backup of all local data")
    import_parser = subcommands.add_parser("import", help="restore a JSON backup")
    import_parser.add_argument("path", help="backup file written by 'export'")
    subcommands.add_parser("clear", help="delete profile, posts, tracks, follows, spots and the outbox")
    subcommands.add_parser("outbox", help="list offline posts waiting for sync")
    timeline_parser = subcommands.add_parser("timeline", help="list saved posts")
    timeline_parser.add_argument("--region", choices=[region.value for region in Region], default=Region.ALL.value)
    timeline_parser.add_argument("--following", action="store_true", help="only posts by followed users")
    return parser


async def _run(context: AppContext, args: argparse.Namespace) -> int:
    repository = context.repository
    if args.command == "export":
        print(await repository.export_all_data())
    elif args.command == "import":
        imported = await repository.import_all_data(Path(args.path).read_text(encoding="utf-8"))
        print(f"imported: {', '.join(imported) or '(nothing)'}")
    elif args.command == "clear":
        await repository.clear_all_data()
        print("local data cleared")
    elif args.command == "outbox":
        pending = await context.outbox.get_offline_posts()
        print(json.dumps([item.to_json_dict() for item in pending], ensure_ascii=False, indent=2))
    elif args.command == "timeline":
        following = await repository.get_following_users() if args.following else None
        posts = filter_timeline(await repository.get_saved_posts(), args.region, following)
        print(get_region_info(args.region).name)
        for post in posts:
            author = post.user.name if post.user else post.user_id
            print(f"{get_post_type_info(post.post_type).emoji} [{get_region_info(post.region).name}] {author}: {post.content}")
    return 0


async def _main(argv: list[str] | None) -> int:
    args = _build_parser().parse_args(argv)
    context = build_app_context(load_settings("tabibito"))
    await context.start()
    try:
        return await _run(context, args)
    finally:
        await context.close()


def main(argv: list[str] | None = None) -> None:
    sys.exit(asyncio.run(_main(argv)))


if __name__ == "__main__":
    main()
