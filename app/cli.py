"""CLI for the work order service: bootstrap users, import and export spreadsheets."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import sys
from pathlib import Path


async def cmd_create_user(args):
    """Create a user and print a session token for API use."""
    from app.db import crud
    from app.db.engine import async_session_factory, create_tables
    from app.services.auth import create_session, hash_password

    await create_tables()

    password = args.password
    if not password:
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match")
            sys.exit(1)

    if len(password) < 8:
        print("Password must be at least 8 characters")
        sys.exit(1)

    async with async_session_factory() as db:
        if await crud.get_user_by_email(db, args.email):
            print(f"User {args.email} already exists")
            sys.exit(1)
        user = await crud.create_user(
            db, args.email, hash_password(password),
            display_name=args.display_name or "", role=args.role,
        )
        token = await create_session(user, db)

    print(f"User created: {user.email} (id={user.id}, role={user.role})")
    print(f"Session token: {token}")


async def _actor(db, email: str):
    from app.db import crud
    from app.services.auth import context_for

    user = await crud.get_user_by_email(db, email)
    if not user or not user.is_active:
        print(f"No active user with email {email}")
        sys.exit(1)
    return context_for(user)


async def cmd_import(args):
    """Run a bulk import from a local CSV/XLSX file and print the report."""
    from app.db.engine import async_session_factory, create_tables
    from app.services.importer import run_import

    path = Path(args.file)
    if not path.is_file():
        print(f"File not found: {path}")
        sys.exit(1)

    await create_tables()
    async with async_session_factory() as db:
        actor = await _actor(db, args.as_email)
        report = await run_import(db, path.read_bytes(), path.name, actor)

    print(json.dumps(report.model_dump(mode="json"), indent=2))
    if report.status == "failed":
        sys.exit(1)


async def cmd_export(args):
    """Write the filtered work order set to a CSV or XLSX file."""
    from app.db.engine import async_session_factory, create_tables
    from app.schemas.work_order import WorkOrderFilters
    from app.services.export import export_work_orders

    filters = WorkOrderFilters(
        status=args.status,
        supervisor=args.supervisor,
        technician=args.technician,
        area=args.area,
        start_date=args.start_date,
        end_date=args.end_date,
        search=args.search,
    )

    await create_tables()
    async with async_session_factory() as db:
        content, _ = await export_work_orders(db, filters, args.format)

    out = Path(args.out)
    out.write_bytes(content)
    print(f"Wrote {len(content)} bytes to {out}")


def main():
    from app.config import get_settings

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Work order service CLI")
    subparsers = parser.add_subparsers(dest="command")

    # create-user
    cu = subparsers.add_parser("create-user", help="Create a user and print a session token")
    cu.add_argument("--email", required=True, help="User email")
    cu.add_argument("--password", default="", help="Password (prompted if not given)")
    cu.add_argument("--display-name", default="", help="Display name, used as agent name on imports")
    cu.add_argument("--role", choices=["admin", "agent"], default="agent")

    # import
    im = subparsers.add_parser("import", help="Import work orders from a CSV/XLSX file")
    im.add_argument("file", help="Path to a .csv, .xlsx or .xls file")
    im.add_argument("--as", dest="as_email", required=True, help="Email of the importing user")

    # export
    ex = subparsers.add_parser("export", help="Export work orders to a file")
    ex.add_argument("out", help="Output path")
    ex.add_argument("--format", choices=["csv", "xlsx"], default="csv")
    ex.add_argument("--status")
    ex.add_argument("--supervisor")
    ex.add_argument("--technician")
    ex.add_argument("--area")
    ex.add_argument("--start-date", help="YYYY-MM-DD")
    ex.add_argument("--end-date", help="YYYY-MM-DD")
    ex.add_argument("--search")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "create-user":
        asyncio.run(cmd_create_user(args))
    elif args.command == "import":
        asyncio.run(cmd_import(args))
    elif args.command == "export":
        asyncio.run(cmd_export(args))


if __name__ == "__main__":
    main()
