#!/usr/bin/env python3
"""
SempreCheio auth -- administrative command line.

Usage:
  python main.py create-account --email dono@salao.com --name "Salão Bela" --role admin
  python main.py create-account --email semprecheioapp@gmail.com --name Plataforma --role super_admin
  python main.py hash-password
  python main.py generate-key
  python main.py encrypt "admin@salon.com"

Environment variables:
  DATABASE_URL     SQLAlchemy URL of the account store (default: local SQLite file)
  ENCRYPTION_KEY   Shared transport secret used by `encrypt`
  APP_ENV          production / development / test
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.crypto import encrypt, generate_encryption_key
from auth.models import Account
from auth.passwords import hash_password
from auth.roles import Role
from auth.store import DuplicateEmail, SqlAccountStore
from core.config import get_settings

_MIN_PASSWORD = 6


def _read_password(provided: Optional[str]) -> Optional[str]:
    """Use --password when given, otherwise prompt twice without echo."""
    if provided:
        return provided
    first = getpass.getpass("Senha: ")
    second = getpass.getpass("Confirme a senha: ")
    if first != second:
        print("  [!] Senhas não coincidem.", file=sys.stderr)
        return None
    return first


def _cmd_create_account(args: argparse.Namespace) -> int:
    password = _read_password(args.password)
    if password is None:
        return 1
    if len(password) < _MIN_PASSWORD:
        print(f"  [!] A senha deve ter pelo menos {_MIN_PASSWORD} caracteres.", file=sys.stderr)
        return 1

    store = SqlAccountStore(args.database_url or get_settings().database_url)
    try:
        account_id = store.create_account(
            Account(
                email=args.email,
                name=args.name,
                password_hash=hash_password(password),
                role=args.role,
                service_type=args.service_type,
                phone=args.phone,
            )
        )
    except DuplicateEmail:
        print(f"  [!] E-mail já cadastrado: {args.email}", file=sys.stderr)
        return 1
    finally:
        store.close()

    print(f"Conta criada: {account_id} ({args.email}, role={args.role})")
    return 0


def _cmd_hash_password(args: argparse.Namespace) -> int:
    password = _read_password(args.password)
    if password is None:
        return 1
    print(hash_password(password))
    return 0


def _cmd_generate_key(args: argparse.Namespace) -> int:
    print(generate_encryption_key())
    return 0


def _cmd_encrypt(args: argparse.Namespace) -> int:
    """Encrypt a value the way the frontend does, for curl-testing the login endpoint."""
    print(encrypt(args.value, args.key or None))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="semprecheio-auth",
        description="Administrative tasks for the SempreCheio authentication service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-account --email dono@salao.com --name "Salão Bela"
  python main.py generate-key >> .env
  python main.py encrypt "minha-senha"
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-account", help="Create an account in the account store")
    create.add_argument("--email", required=True)
    create.add_argument("--name", required=True)
    create.add_argument(
        "--role",
        choices=[role.value for role in Role],
        default=Role.ADMIN.value,
        help="Stored role (default: admin)",
    )
    create.add_argument("--service-type", default=None, metavar="TYPE", help="Business category")
    create.add_argument("--phone", default=None)
    create.add_argument("--password", default=None, help="Skip the interactive prompt (avoid in shared shells)")
    create.add_argument("--database-url", default=None, metavar="URL", help="Override DATABASE_URL")
    create.set_defaults(func=_cmd_create_account)

    hashp = sub.add_parser("hash-password", help="Print a bcrypt hash for a password")
    hashp.add_argument("--password", default=None)
    hashp.set_defaults(func=_cmd_hash_password)

    keygen = sub.add_parser("generate-key", help="Print a random secret for ENCRYPTION_KEY or JWT_SECRET")
    keygen.set_defaults(func=_cmd_generate_key)

    enc = sub.add_parser("encrypt", help="Encrypt a value into the iv_hex:ciphertext_hex login format")
    enc.add_argument("value")
    enc.add_argument("--key", default=None, help="Secret to use instead of ENCRYPTION_KEY")
    enc.set_defaults(func=_cmd_encrypt)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
