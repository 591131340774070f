#!/usr/bin/env python3
"""Manage the CoinGecko API key in the system keychain.

The key is optional: without it the public CoinGecko endpoint is used.
Stored keys are picked up by the keychain settings source at startup and
take priority over ``.env`` and environment variables.

Usage:
    python -m scripts.manage_api_key status
    python -m scripts.manage_api_key set              # prompts for the key
    python -m scripts.manage_api_key delete
    python -m scripts.manage_api_key import [--clean] # copy from backend/.env
"""

import argparse
import getpass
import re
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import dotenv_values

from services.credential_manager import (
    CREDENTIAL_KEYS,
    delete_credential,
    get_credential,
    set_credential,
)

API_KEY_NAME = "COINGECKO_API_KEY"
DEFAULT_ENV_FILE = Path(__file__).parent.parent / ".env"


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


def show_status() -> bool:
    """Print whether a key is stored. Returns ``True`` when one is."""
    value = get_credential(API_KEY_NAME)
    if value:
        print(f"{API_KEY_NAME} is stored in the keychain ({_mask(value)})")
        return True
    print(f"{API_KEY_NAME} is not stored; the public API tier will be used")
    return False


def store_key(value: str) -> bool:
    value = value.strip()
    if not value:
        print("Error: No API key provided")
        return False
    if set_credential(API_KEY_NAME, value):
        print(f"Stored {API_KEY_NAME} in keychain")
        return True
    print(f"Failed to store {API_KEY_NAME}")
    return False


def remove_key() -> bool:
    if delete_credential(API_KEY_NAME):
        print(f"Removed {API_KEY_NAME} from keychain")
        return True
    print(f"{API_KEY_NAME} was not removed (not stored, or keychain unavailable)")
    return False


def import_from_env(env_path: Path, *, clean: bool = False) -> list[str]:
    """Copy credential values from a ``.env`` file into the keychain.

    Args:
        env_path: Path to the ``.env`` file.
        clean: If ``True``, drop the imported lines from the file afterwards.

    Returns:
        Names of the credentials now held in the keychain with the same
        value as the file.
    """
    if not env_path.exists():
        print(f"No .env file found at {env_path}")
        sys.exit(1)

    values = dotenv_values(env_path)
    imported: list[str] = []

    for key in sorted(CREDENTIAL_KEYS):
        value = values.get(key)
        if not value:
            print(f"  - {key} (empty or missing in .env)")
            continue
        if get_credential(key) == value:
            print(f"  = {key} (already in keychain)")
            imported.append(key)
            continue
        if set_credential(key, value):
            print(f"  + {key}")
            imported.append(key)
        else:
            print(f"  ! {key} (failed)")

    if clean:
        if imported:
            _clean_env_file(env_path, imported)
        else:
            print("Nothing to clean from .env.")
    return imported


def _clean_env_file(env_path: Path, keys_to_remove: list[str]) -> None:
    """Remove credential lines from .env, preserving everything else."""
    lines = env_path.read_text().splitlines(keepends=True)
    pattern = re.compile(
        r"^(" + "|".join(re.escape(k) for k in keys_to_remove) + r")\s*="
    )
    env_path.write_text("".join(line for line in lines if not pattern.match(line)))
    print(f"Removed {len(keys_to_remove)} credential(s) from {env_path}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage the CoinGecko API key")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show whether a key is stored")
    sub.add_parser("set", help="Prompt for a key and store it")
    sub.add_parser("delete", help="Remove the stored key")
    imp = sub.add_parser("import", help="Copy the key from a .env file")
    imp.add_argument(
        "--clean",
        action="store_true",
        help="Remove imported credentials from .env afterwards",
    )
    imp.add_argument(
        "--env-file",
        type=Path,
        default=DEFAULT_ENV_FILE,
        help="Path to .env file (default: backend/.env)",
    )

    args = parser.parse_args(argv)
    if args.command == "status":
        ok = show_status()
    elif args.command == "set":
        ok = store_key(getpass.getpass(f"Enter {API_KEY_NAME}: "))
    elif args.command == "delete":
        ok = remove_key()
    else:
        ok = bool(import_from_env(args.env_file, clean=args.clean))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
