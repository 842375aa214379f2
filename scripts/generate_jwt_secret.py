#!/usr/bin/env python3
"""Generate a signing key for MatchFyn access tokens."""

from __future__ import annotations

import argparse
import os
import secrets
import sys
from pathlib import Path

ENV_VAR_NAME = "JWT_SECRET_KEY"
MIN_BYTE_LENGTH = 32


def generate_secret(byte_length: int = 64) -> str:
    """Return a URL-safe secret suitable for HS256 signing."""
    if byte_length < MIN_BYTE_LENGTH:
        raise ValueError(f"HS256 keys need at least {MIN_BYTE_LENGTH} bytes (got {byte_length})")
    return secrets.token_urlsafe(byte_length)


def write_secret(path: Path, secret: str, *, name: str = ENV_VAR_NAME) -> None:
    """Set ``name`` in an env file, keeping every other line as is."""
    entry = f"{name}={secret}"
    lines = path.read_text(encoding="utf-8").splitlines() if path.exists() else []
    kept = [line for line in lines if not line.startswith(f"{name}=")]
    kept.append(entry)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(kept) + "\n", encoding="utf-8")
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--bytes", type=int, default=64, help="Random bytes behind the secret.")
    parser.add_argument(
        "--env-file",
        type=Path,
        metavar="PATH",
        help=f"Write {ENV_VAR_NAME} into this env file instead of printing it.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        secret = generate_secret(args.bytes)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    if args.env_file is None:
        print(secret)
    else:
        write_secret(args.env_file, secret)
        print(f"Wrote {ENV_VAR_NAME} to {args.env_file}", file=sys.stderr)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
