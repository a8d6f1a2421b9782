#!/usr/bin/env python3
"""
RunAuth — operator tools for the login service's account database.

Usage:
  python main.py create-account
  python main.py create-account --username Runner
  python main.py show-player 1234567890
  python main.py battle-data 1234567890
  python main.py --db sqlite:////srv/runauth.db show-player 1234567890

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the account database (overridden by --db).
"""

import argparse
import json
import sys
from dataclasses import asdict
from typing import Optional

from accounts.battle import player_to_battle_data
from accounts.store import AccountStore
from core.config import get_settings
from core.errors import NotFoundError, StorageError


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2))


def _create_account(store: AccountStore, args: argparse.Namespace) -> int:
    player = store.create_account(username=args.username)
    print(f"  Created player {player.id}")
    _print_json({"id": player.id, "password": player.password, "key": player.key})
    return 0


def _show_player(store: AccountStore, args: argparse.Namespace) -> int:
    player = store.get_player(args.player_id)
    data = asdict(player)
    # Credentials stay out of terminal scrollback unless asked for.
    if not args.show_secrets:
        for secret in ("password", "key", "migration_password", "user_password"):
            data[secret] = "***" if data[secret] else ""
    _print_json(data)
    return 0


def _battle_data(store: AccountStore, args: argparse.Namespace) -> int:
    _print_json(asdict(player_to_battle_data(store.get_player(args.player_id))))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runauth",
        description="Inspect and seed the login service's account database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-account", help="Create a new account and print its credentials")
    create.add_argument("--username", default=None, help="Display name (default: DEFAULT_USERNAME setting)")
    create.set_defaults(handler=_create_account)

    show = sub.add_parser("show-player", help="Print a player record as JSON")
    show.add_argument("player_id", metavar="PLAYER-ID")
    show.add_argument("--show-secrets", action="store_true", help="Print credentials instead of masking them")
    show.set_defaults(handler=_show_player)

    battle = sub.add_parser("battle-data", help="Print the battle roster entry for a player")
    battle.add_argument("player_id", metavar="PLAYER-ID")
    battle.set_defaults(handler=_battle_data)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    settings = get_settings()
    if getattr(args, "username", "") is None:
        args.username = settings.default_username

    store = AccountStore(args.db or settings.database_url, timeout=settings.storage_timeout_seconds)
    try:
        return args.handler(store, args)
    except NotFoundError as exc:
        print(f"  [!] {exc}")
        return 1
    except StorageError as exc:
        print(f"  [!] Database error: {exc}")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
