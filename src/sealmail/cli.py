"""Key management command line tool for sealmail."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import KeystoreConfig
from .constants import ENV_PASSPHRASE
from .crypto.keypair import generate_keypair
from .errors import InvalidKeyError, SealMailError
from .keystore import generate_passphrase, load_keys, save_keys

logger = logging.getLogger("sealmail")


def cmd_generate(args: argparse.Namespace, config: KeystoreConfig) -> None:
    """Generate a keypair and store it."""
    passphrase = args.passphrase or config.passphrase
    generated = passphrase is None
    if passphrase is None:
        passphrase = generate_passphrase()

    keypair = generate_keypair()
    paths = save_keys(keypair, passphrase, config)

    print("Public key (safe to share):")
    print(keypair.public_key_b64)
    print()
    print(f"Public key:  {paths.public_key_path}")
    print(f"Private key: {paths.private_key_path}")

    if generated:
        print()
        print("Generated passphrase (keep it safe):")
        print(passphrase)
    if args.write_env:
        Path(args.write_env).write_text(f"{ENV_PASSPHRASE}={passphrase}\n", encoding="utf-8")
        print(f"Passphrase written to {args.write_env}")


def cmd_load(args: argparse.Namespace, config: KeystoreConfig) -> None:
    """Unlock the stored keypair."""
    passphrase = _require_passphrase(args, config)
    keypair = load_keys(passphrase, config)
    print("Keys loaded")
    print(f"Public key: {keypair.public_key_b64}")


def cmd_verify(args: argparse.Namespace, config: KeystoreConfig) -> None:
    """Check that the stored private key matches the public key file."""
    passphrase = _require_passphrase(args, config)
    try:
        load_keys(passphrase, config)
    except InvalidKeyError as e:
        raise SealMailError(f"Stored keys do not match: {e}") from e
    print("OK: stored keys match")


def _require_passphrase(args: argparse.Namespace, config: KeystoreConfig) -> str:
    passphrase = args.passphrase or config.passphrase
    if not passphrase:
        raise SealMailError(f"No passphrase given: use --passphrase or set {ENV_PASSPHRASE}")
    return passphrase


def _add_common_options(parser: argparse.ArgumentParser, suppress: bool = False) -> None:
    """Add the options shared by the top-level parser and every subcommand."""
    default = argparse.SUPPRESS if suppress else None
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Enable debug logging",
    )
    parser.add_argument(
        "--dir", default=default, help="Key directory (default: $SEALMAIL_KEYS_DIR or ./keys)"
    )
    parser.add_argument(
        "--passphrase", default=default, help=f"Passphrase (default: ${ENV_PASSPHRASE})"
    )
    parser.add_argument("--env-file", default=default, help="Path of a .env file to load")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sealmail-keygen",
        description="Generate and manage the holder's X25519 keypair.",
    )
    _add_common_options(parser)

    # Subcommands take the same options; SUPPRESS keeps a value given before
    # the subcommand when it is not repeated after it
    common = argparse.ArgumentParser(add_help=False)
    _add_common_options(common, suppress=True)

    sub = parser.add_subparsers(dest="command")

    p_generate = sub.add_parser(
        "generate", parents=[common], help="Generate and store a new keypair"
    )
    p_generate.add_argument(
        "--write-env", metavar="PATH", help="Write the passphrase to a .env file"
    )
    p_generate.set_defaults(func=cmd_generate)

    p_load = sub.add_parser("load", parents=[common], help="Unlock the stored keypair")
    p_load.set_defaults(func=cmd_load)

    p_verify = sub.add_parser("verify", parents=[common], help="Check the stored keypair")
    p_verify.set_defaults(func=cmd_verify)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = KeystoreConfig.from_env(args.env_file)
    if args.dir:
        config.keys_dir = Path(args.dir)

    try:
        args.func(args, config)
    except SealMailError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
