#!/usr/bin/env python3
"""
AuthGate -- JWT authentication and role authorization service.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py check-password 'Secr3t!pw'
  python main.py hash-password 'Secr3t!pw'
  python main.py decode-token eyJhbGciOi...

Environment variables:
  SECRET_KEY    JWT signing key (32+ chars). Required unless DEBUG=true.
  DEBUG         true to auto-generate a throwaway SECRET_KEY for local runs.
  See core/config.py for the full list.
"""

import argparse
import json
import sys

from auth.passwords import PasswordHasher
from auth.tokens import InvalidToken, TokenIssuer
from core.config import get_settings


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_check_password(args: argparse.Namespace) -> int:
    violations = PasswordHasher.validate_strength(args.password)
    if not violations:
        print("Password meets every strength rule.")
        return 0
    print("Password rejected:")
    for message in violations:
        print(f"  - {message}")
    return 1


def _cmd_hash_password(args: argparse.Namespace) -> int:
    rounds = args.rounds if args.rounds is not None else get_settings().bcrypt_rounds
    print(PasswordHasher(rounds=rounds).hash(args.password))
    return 0


def _cmd_decode_token(args: argparse.Namespace) -> int:
    """Verify a token against the configured key and print its claims.

    Only meaningful with a fixed SECRET_KEY -- a key auto-generated under
    DEBUG=true differs from the one the running server generated.
    """
    settings = get_settings()
    issuer = TokenIssuer(secret_key=settings.secret_key, algorithm=settings.jwt_algorithm)
    try:
        claims = issuer.verify(args.token, expected_type=args.type)
    except InvalidToken as e:
        print(f"  [!] {'Expired' if e.expired else 'Invalid'} token: {e.reason}")
        return 1
    print(json.dumps({**claims.to_dict(), "jti": claims.jti}, indent=2))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="JWT authentication and role authorization service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py check-password 'weak'
  python main.py hash-password 'Admin123!' --rounds 4
  SECRET_KEY=... python main.py decode-token <token> --type refresh
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(func=_cmd_serve)

    check = sub.add_parser("check-password", help="List the strength rules a password fails")
    check.add_argument("password")
    check.set_defaults(func=_cmd_check_password)

    hash_pw = sub.add_parser("hash-password", help="Print a bcrypt hash of a password")
    hash_pw.add_argument("password")
    hash_pw.add_argument(
        "--rounds",
        type=int,
        default=None,
        metavar="N",
        help="bcrypt work factor (default: BCRYPT_ROUNDS setting)",
    )
    hash_pw.set_defaults(func=_cmd_hash_password)

    decode = sub.add_parser("decode-token", help="Verify a JWT and print its claims")
    decode.add_argument("token")
    decode.add_argument(
        "--type",
        choices=["access", "refresh"],
        default=None,
        help="Also require this token type",
    )
    decode.set_defaults(func=_cmd_decode_token)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
