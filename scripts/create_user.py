import argparse
import getpass
import sys
from dataclasses import replace
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from userstore.config import load_config
from userstore.errors import DuplicateIdentityError, TransportError
from userstore.security import MIN_PASSWORD_LENGTH
from userstore.service import AccountService
from userstore.store import UserStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a user directory account")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--table",
        dest="table_name",
        default=None,
        help="DynamoDB table to write to (defaults to USERSTORE_TABLE or the configured table)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < MIN_PASSWORD_LENGTH:
            print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    config = load_config()
    if args.table_name:
        config = replace(config, table_name=args.table_name)
    store = UserStore.from_config(config)

    service = AccountService(store)
    try:
        user = service.register(args.name, args.email, password)
    except DuplicateIdentityError:
        print(f"Error: {args.email} is already registered.", file=sys.stderr)
        return 1
    except (ValueError, TransportError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user {user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
