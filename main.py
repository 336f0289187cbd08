"""Command-line interface for the user directory service."""

from __future__ import annotations
import argparse
import logging
import sys
from typing import Sequence

from userstore.config import StoreConfig, load_config
from userstore.errors import TransportError
from userstore.store import UserStore

logger = logging.getLogger("userstore.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User directory utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    init_parser = subparsers.add_parser("init-table", help="Create the DynamoDB table if it is missing")
    init_parser.add_argument(
        "--wait",
        action="store_true",
        help="Block until DynamoDB reports the new table as active",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port for the HTTP API (default: 8080)",
    )

    subparsers.add_parser("list-users", help="Print every registered user")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-table", "list-users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_table(store: UserStore, config: StoreConfig, *, wait: bool = False) -> None:
    store.initialize_table(
        read_capacity=config.read_capacity,
        write_capacity=config.write_capacity,
        wait=wait,
    )


def _serve(*, store: UserStore, host: str, port: int) -> None:
    from userstore.api import create_app
    import uvicorn

    logger.info("Starting user directory API on http://%s:%s", host, port)
    app = create_app(store=store)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _list_users(store: UserStore) -> None:
    users = store.list()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<32}  {'Name':<24}  {'Email':<32}  Last login")
    print("-" * 110)
    for user in sorted(users, key=lambda item: item.email):
        last_login = user.last_login.strftime("%Y-%m-%d %H:%M:%S %Z") if user.last_login else "never"
        print(f"{user.id:<32}  {user.name:<24}  {user.email:<32}  {last_login}")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    config = load_config()
    store = UserStore.from_config(config)

    try:
        if args.command == "init-table":
            _initialise_table(store, config, wait=args.wait)
            print("Table initialisation complete.")
        elif args.command == "list-users":
            _list_users(store)
        elif args.command == "serve":
            _initialise_table(store, config)
            _serve(store=store, host=args.host, port=args.port)
    except TransportError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
