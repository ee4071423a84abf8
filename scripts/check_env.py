"""Utility for verifying token manager configuration before processes start.

The tool performs three checks:

1. It attempts to instantiate ``AppSettings`` using the provided ``.env`` file,
   surfacing a missing Redis URL, DynamoDB table or malformed timeout before
   any request path depends on them.
2. It can record and verify a checksum for the ``.env`` file so that two
   hosts sharing a token cache do not silently drift apart.
3. ``ping`` round-trips a probe entry through the configured shared cache.

Example usages::

    python -m scripts.check_env record --env-file /opt/jambojet/.env \
        --hash-file /opt/jambojet/.env.sha256

    python -m scripts.check_env verify --env-file /opt/jambojet/.env \
        --hash-file /opt/jambojet/.env.sha256

    python -m scripts.check_env ping --env-file /opt/jambojet/.env
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable
from uuid import uuid4

from pydantic import ValidationError

from jambojet.core.config import AppSettings, _load_env_file
from jambojet.core.exceptions import SharedTierUnavailable
from jambojet.core.logging import configure_logging
from jambojet.dependencies import build_shared_cache

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_CACHE_UNREACHABLE = 4
EXIT_RUNTIME_ERROR = 5

PROBE_TTL_SECONDS = 5.0


def _compute_hash(env_file: Path) -> str:
    """Return the SHA256 checksum for the target environment file."""
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Load settings after applying the supplied env file."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    """Persist the current checksum to ``hash_file``."""
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare the current checksum to the recorded baseline."""
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Re-run with the 'record' command to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}\n"
        "Processes sharing the token cache may disagree on prefix or secret.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _ping_cache(settings: AppSettings) -> int:
    """Write, read back and delete a probe entry in the shared cache."""
    key = f"{settings.cache.key_prefix}probe_{uuid4().hex}"
    value = uuid4().hex
    try:
        cache = build_shared_cache(settings)
        cache.set(key, value, PROBE_TTL_SECONDS)
        echoed = cache.get(key)
        cache.delete(key)
    except SharedTierUnavailable as exc:
        print(f"Shared cache ({settings.cache.backend}) unreachable: {exc}", file=sys.stderr)
        return EXIT_CACHE_UNREACHABLE

    if echoed != value:
        print(
            f"Shared cache ({settings.cache.backend}) did not return the probe value.",
            file=sys.stderr,
        )
        return EXIT_CACHE_UNREACHABLE
    print(f"Shared cache ({settings.cache.backend}) OK.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate token manager settings, detect .env drift, probe the shared cache."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the working directory).",
        )

    for name, help_text in (
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare the checksum with the baseline."),
    ):
        checksum_parser = subparsers.add_parser(name, help=help_text)
        add_common_arguments(checksum_parser)
        checksum_parser.add_argument(
            "--hash-file",
            required=True,
            type=Path,
            help="Location of the checksum baseline.",
        )

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings without touching any checksum files.",
    )
    add_common_arguments(check_parser)

    ping_parser = subparsers.add_parser(
        "ping",
        help="Validate settings and round-trip a probe through the shared cache.",
    )
    add_common_arguments(ping_parser)

    return parser


def _ensure_env_file(env_file: Path) -> None:
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file

    try:
        _ensure_env_file(env_file)
        settings = _load_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    configure_logging(settings.log_level)
    command: str = args.command
    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
        "ping": lambda: _ping_cache(settings),
    }
    return handlers[command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
