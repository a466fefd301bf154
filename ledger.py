#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Gas sales ledger (snapshot-persisted SQLite)

Commands:
  init                Load the stored database (or the seed) and report table counts
  seed                Build a binary seed image from a schema .sql file
  migrate             One-time import from the old key/value store (JSON export)
  backup              Write the full database image to a file
  restore             Replace the database with a backup image
  history             Print every day with its totals, newest first

Notes:
- Settings come from LEDGER_* environment variables or config.yaml (see gasledger/db.py).
- The database is stored wholesale after every write; there is no separate save step.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from gasledger.db import DEFAULT_SEED, get_settings, make_engine
from gasledger.errors import InvalidSnapshot, LedgerError
from gasledger.logs import LogContext, ensure_log_schema
from gasledger.providers.legacy_store import open_legacy_store
from gasledger.seed import build_image
from gasledger.services.backup_svc import export_backup, restore_backup, table_counts
from gasledger.services.config_svc import ensure_default_settings
from gasledger.services.migrate_svc import LegacyImporter
from gasledger.services.sales_svc import get_history


async def _open(settings):
    engine = make_engine(settings)
    await engine.init(settings.seed_path)
    await ensure_log_schema(engine)
    await ensure_default_settings(engine)
    return engine


async def cmd_init(settings, args):
    engine = await _open(settings)
    print({"data_dir": str(settings.data_dir), **table_counts(engine)})


async def cmd_seed(settings, args):
    schema = Path(args.schema).read_text(encoding="utf-8")
    Path(args.out).write_bytes(build_image(schema))
    print(f"Seed image written to {args.out}")


async def cmd_migrate(settings, args):
    engine = await _open(settings)
    legacy = Path(args.legacy) if args.legacy else settings.legacy_path
    importer = LegacyImporter(engine, lambda: open_legacy_store(legacy))
    res = await importer.run(on_progress=lambda msg: print(f"[migrate] {msg}"))
    print(res.to_dict())


async def cmd_backup(settings, args):
    engine = await _open(settings)
    filename, data = export_backup(engine)
    out = Path(args.out) if args.out else Path(filename)
    out.write_bytes(data)
    print(f"Backup written to {out} ({len(data)} bytes)")


async def cmd_restore(settings, args):
    engine = await _open(settings)
    log = LogContext("RESTORE_SNAPSHOT")
    log.set_payload({"filename": args.file})
    try:
        res = await restore_backup(engine, Path(args.file).read_bytes(), log)
    except InvalidSnapshot as e:
        await log.write(engine, "ERROR", str(e))
        raise
    await log.write(engine, "OK")
    print(res)


async def cmd_history(settings, args):
    engine = await _open(settings)
    rows = get_history(engine)
    if not rows:
        print("No days recorded.")
        return
    print(f"{'date':<12}{'opening':>10}{'unit':>10}{'kg':>10}{'amount':>12}{'balance':>10}{'n':>5}")
    for r in rows:
        print(
            f"{r['date']:<12}{r['opening_stock']:>10.2f}{r['unit_price']:>10.2f}"
            f"{r['kg_sum']:>10.2f}{r['price_sum']:>12.2f}{r['balance']:>10.2f}{r['sale_count']:>5}"
        )


def main(argv=None):
    ap = argparse.ArgumentParser(description="Gas sales ledger")
    ap.add_argument("--config", default=None, help="Path to config.yaml")
    ap.add_argument("-v", "--verbose", action="store_true")
    sp = ap.add_subparsers(dest="cmd", required=True)

    sp.add_parser("init")

    p = sp.add_parser("seed")
    p.add_argument("--schema", default=DEFAULT_SEED)
    p.add_argument("--out", required=True)

    p = sp.add_parser("migrate")
    p.add_argument("--legacy", help="JSON export of the old store (overrides config)")

    p = sp.add_parser("backup")
    p.add_argument("--out")

    p = sp.add_parser("restore")
    p.add_argument("file")

    sp.add_parser("history")

    args = ap.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings(args.config)

    handlers = {
        "init": cmd_init,
        "seed": cmd_seed,
        "migrate": cmd_migrate,
        "backup": cmd_backup,
        "restore": cmd_restore,
        "history": cmd_history,
    }
    try:
        asyncio.run(handlers[args.cmd](settings, args))
    except LedgerError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
