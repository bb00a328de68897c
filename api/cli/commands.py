"""Operator commands for the collection store.

Usage:
    python -m api.cli backup --out backup.json
    python -m api.cli restore backup.json
    python -m api.cli migrate
    python -m api.cli info
    python -m api.cli exists customers
    python -m api.cli init-schema
"""

import argparse
import asyncio
import sys
from pathlib import Path

from domain import Collection, table_for
from shared.config import StoreConfig, load_config
from shared.exceptions import ConfigError, StorageError
from storage import DbSchemaManager, LocalStorageAdapter, StoreContext, bootstrap


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="api.cli",
        description="Studio store maintenance",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    backup_parser = subparsers.add_parser("backup", help="Write a backup document")
    backup_parser.add_argument("--out", type=str, default=None, help="Output file (default: stdout)")

    restore_parser = subparsers.add_parser("restore", help="Restore a backup document")
    restore_parser.add_argument("file", type=str, help="Backup JSON file")

    subparsers.add_parser("migrate", help="Move legacy single-blob data into the store")
    subparsers.add_parser("info", help="Show storage usage or the table map")

    exists_parser = subparsers.add_parser("exists", help="Check whether a collection exists")
    exists_parser.add_argument("collection", type=str, help="Collection name")

    subparsers.add_parser("init-schema", help="Create remote tables")
    return parser


async def cmd_backup(context: StoreContext, args: argparse.Namespace) -> int:
    document = await context.store.backup()
    if args.out:
        Path(args.out).write_text(document, encoding="utf-8")
        print(f"[backup] wrote {args.out}")
    else:
        print(document)
    return 0


async def cmd_restore(context: StoreContext, args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"[error] File not found: {path}")
        return 1
    names = await context.store.restore(path.read_text(encoding="utf-8"))
    print(f"[restore] done: {', '.join(names) or 'nothing to restore'}")
    return 0


async def cmd_migrate(context: StoreContext, args: argparse.Namespace) -> int:
    moved = context.migrated or await context.migrator.migrate()
    print("[migrate] legacy data migrated" if moved else "[migrate] nothing to migrate")
    return 0


async def cmd_info(context: StoreContext, args: argparse.Namespace) -> int:
    store = context.store
    print(f"backend:   {store.backend}")
    print(f"namespace: {context.config.namespace}")
    if isinstance(store, LocalStorageAdapter):
        info = store.storage_info()
        print(f"used:      {info.used}")
        print(f"available: {'unlimited' if info.available is None else info.available}")
        print(f"collections: {', '.join(info.collections) or '<none>'}")
    else:
        for collection in Collection.ALL:
            print(f"  {collection:<22} -> {table_for(collection)}")
    return 0


async def cmd_exists(context: StoreContext, args: argparse.Namespace) -> int:
    print("true" if await context.store.exists(args.collection) else "false")
    return 0


def cmd_init_schema(config: StoreConfig) -> int:
    if config.backend != "remote":
        print("[schema] STORAGE_BACKEND is not 'remote'; nothing to create")
        return 0
    DbSchemaManager(config).ensure_tables()
    return 0


COMMANDS = {
    "backup": cmd_backup,
    "restore": cmd_restore,
    "migrate": cmd_migrate,
    "info": cmd_info,
    "exists": cmd_exists,
}


async def _run_async(config: StoreConfig, args: argparse.Namespace) -> int:
    # an in-memory medium would vanish when this process exits
    if config.backend == "local" and not config.local_db_path:
        raise ConfigError("LOCAL_DB_PATH must point to a database file for the local backend")
    # migrate reports its own result instead of running at bootstrap
    if args.command == "migrate":
        config.auto_migrate = False
    context = await bootstrap(config)
    return await COMMANDS[args.command](context, args)


def run_command(args: argparse.Namespace, config: StoreConfig = None) -> int:
    config = config or load_config()
    try:
        if args.command == "init-schema":
            return cmd_init_schema(config)
        return asyncio.run(_run_async(config, args))
    except (ConfigError, StorageError) as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
