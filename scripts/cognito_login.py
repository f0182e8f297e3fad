"""cognito_login.py

Log in to a user pool with the SRP flow and print what the session holds.

Key features
------------
* Credentials come from ``COGNITO_*`` env vars, optionally loaded from a
  ``.env`` style file (existing env vars win)
* Prints the ID token, the user's attributes and the token map
* ``--refresh`` exercises the refresh flow once after logging in
* Errors are reported by kind so credential problems are easy to tell apart
  from network trouble

Example
-------
    uv run python scripts/cognito_login.py --env-file .env --refresh
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from cognito_client import (
    ClientConfig,
    CognitoClientError,
    SessionManager,
    credentials_from_env,
)

DEFAULT_ENV_FILE = Path(".env")


# --------------------------------------------------------------------------- #
# Environment helpers
# --------------------------------------------------------------------------- #
def _load_env_file(env_path: Path | None) -> None:
    """Load KEY=VALUE pairs from a .env style file into *os.environ*."""
    if env_path is None or not env_path.exists():
        return

    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = val


def main() -> None:
    parser = argparse.ArgumentParser(description="Authenticate against a Cognito user pool.")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=DEFAULT_ENV_FILE,
        help="Path to .env file with COGNITO_* variables (default: .env)",
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Refresh the tokens once after logging in.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s %(message)s",
    )
    _load_env_file(args.env_file)

    try:
        session = SessionManager(credentials_from_env(), config=ClientConfig.from_env())
        id_token = session.authenticate()
        print(f"Token to use as JWT token is:\n{id_token}\n")

        print(json.dumps(session.get_profile(), indent=4, ensure_ascii=False))

        if args.refresh:
            session.refresh()
            print("Tokens refreshed.", file=sys.stderr)
        print(json.dumps(session.current_tokens(), indent=2))
    except CognitoClientError as exc:
        sys.exit(f"{exc.kind}: {exc}")


if __name__ == "__main__":
    main()
