#!/usr/bin/env python3
"""
Gridgate -- role-based access control service.

Usage:
  python main.py seed
  python main.py seed --admin-email ops@example.com --admin-password s3cret
  python main.py create-user --email jane@example.com --name "Jane" --role admin
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload

Environment variables:
  SECRET_KEY     Token signing key (>= 32 chars). Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL. Defaults to a SQLite file under rbac/.
  DEBUG          true enables dev mode (auto-generated SECRET_KEY).
"""

import argparse
import getpass
from typing import Optional

from auth.passwords import PasswordHasher
from core.config import get_settings
from core.errors import GridgateError
from rbac.graph import RoleGraphManager
from rbac.seed import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, seed_defaults
from rbac.store import RbacStore
from rbac.users import UserManager


def _open_services() -> tuple[RbacStore, RoleGraphManager, UserManager]:
    settings = get_settings()
    store = RbacStore(settings.database_url)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    return store, RoleGraphManager(store), UserManager(store, hasher)


def _cmd_seed(args: argparse.Namespace) -> int:
    store, graph, users = _open_services()
    try:
        summary = seed_defaults(store, graph, users, args.admin_email, args.admin_password)
    finally:
        store.close()
    print(f"  Permissions created: {', '.join(summary.permissions_created) or 'none'}")
    print(f"  Roles created:       {', '.join(summary.roles_created) or 'none'}")
    print(f"  Role permissions:    {summary.edges_created} assigned")
    if summary.admin_created:
        print(f"  Superadmin created:  {args.admin_email}")
        if args.admin_password == DEFAULT_ADMIN_PASSWORD:
            print("  [!] Using the default superadmin password. Change it after first login.")
    return 0


def _cmd_create_user(args: argparse.Namespace) -> int:
    password: Optional[str] = args.password or getpass.getpass("Password: ")
    if not password:
        print("  [!] A password is required.")
        return 1
    store, _graph, users = _open_services()
    try:
        role = store.get_role_by_name(args.role)
        if role is None:
            print(f"  [!] Role '{args.role}' does not exist. Run 'python main.py seed' first.")
            return 1
        user = users.create_user(args.email, password, args.name or args.email, role.id)
    except GridgateError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        store.close()
    print(f"  User created: {user.email} ({user.id}) with role {args.role}")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gridgate",
        description="Role-based access control: users, roles, permissions and session tokens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py seed
  python main.py create-user --email jane@example.com --role user
  DEBUG=true python main.py serve --reload
        """,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    seed = subparsers.add_parser("seed", help="Create default permissions, roles and the superadmin account")
    seed.add_argument(
        "--admin-email",
        default=DEFAULT_ADMIN_EMAIL,
        metavar="EMAIL",
        help=f"Superadmin email (default: {DEFAULT_ADMIN_EMAIL})",
    )
    seed.add_argument(
        "--admin-password",
        default=DEFAULT_ADMIN_PASSWORD,
        metavar="PASSWORD",
        help="Superadmin password (default: the documented first-run password)",
    )
    seed.set_defaults(handler=_cmd_seed)

    create_user = subparsers.add_parser("create-user", help="Create a user with an existing role")
    create_user.add_argument("--email", required=True, help="Login email (unique)")
    create_user.add_argument("--name", default=None, help="Display name (default: the email)")
    create_user.add_argument("--role", default="user", help="Role name (default: user)")
    create_user.add_argument(
        "--password",
        default=None,
        help="Password. Prompted for when omitted, which keeps it out of shell history.",
    )
    create_user.set_defaults(handler=_cmd_create_user)

    serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(handler=_cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
