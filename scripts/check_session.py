"""Inspect or reset the credentials stored on this machine.

Sub-commands:

1. ``status`` prints whether the stored session can be used or recovered, and
   when each token expires. Token values are never printed.
2. ``migrate`` moves tokens left in the legacy unencrypted record into the
   encrypted store.
3. ``clear`` forgets the stored session.

Example usages::

    python -m scripts.check_session status
    python -m scripts.check_session migrate --db-path ~/.bmn/credentials.db
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from pydantic import ValidationError

from bmn_client.core.config import CredentialSettings
from bmn_client.core.logging import configure_logging
from bmn_client.dependencies import ConfigurationError, build_credential_store
from bmn_client.services import CredentialStore

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
EXIT_NOT_AUTHENTICATED = 4


def _status(store: CredentialStore) -> int:
    record = store.load()
    if record is None:
        print("No stored session.")
        return EXIT_NOT_AUTHENTICATED

    access_state = "valid" if store.get_access_token() else "expired"
    refresh_state = "valid" if store.get_refresh_token() else "expired"
    print(f"Access token:  {access_state} (expires {record.access_expires_at.isoformat()})")
    print(f"Refresh token: {refresh_state} (expires {record.refresh_expires_at.isoformat()})")
    if access_state == "valid" or refresh_state == "valid":
        print("Session is usable.")
        return EXIT_OK
    print("Session cannot be recovered; sign in again.")
    return EXIT_NOT_AUTHENTICATED


def _migrate(store: CredentialStore) -> int:
    if store.migrate_legacy_credentials():
        print("Migrated legacy credentials into the encrypted store.")
    else:
        print("No legacy credentials to migrate.")
    return EXIT_OK


def _clear(store: CredentialStore) -> int:
    store.clear()
    print("Stored session cleared.")
    return EXIT_OK


_COMMANDS = {
    "status": _status,
    "migrate": _migrate,
    "clear": _clear,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect or reset locally stored MLS API credentials."
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Credential database path (default: BMN_CREDENTIALS_DB_PATH).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level for diagnostic output.",
    )
    parser.add_argument("command", choices=sorted(_COMMANDS))
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        overrides = {"db_path": args.db_path} if args.db_path else {}
        settings = CredentialSettings(**overrides)
        store = build_credential_store(settings)
    except (ValidationError, ConfigurationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    return _COMMANDS[args.command](store)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
