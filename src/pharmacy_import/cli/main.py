from __future__ import annotations

import argparse
import logging
from pathlib import Path

from pharmacy_import.cli.loader import dry_run_file, load_file
from pharmacy_import.config import load_settings
from pharmacy_import.db.connect import connect
from pharmacy_import.db.initialize import db_init
from pharmacy_import.ingest.template import TEMPLATE_FILENAME, write_template
from pharmacy_import.logs import log_summary, setup_logging
from pharmacy_import.pipeline.approval import ApproveAll, Approver, PromptApprover, RejectAll
from pharmacy_import.pipeline.errors import DependencyFailure, ImportAborted

logger = logging.getLogger(__name__)


def _approver(choice: str) -> Approver:
    if choice == "all":
        return ApproveAll()
    if choice == "none":
        return RejectAll()
    return PromptApprover()


def main(argv: list[str] | None = None) -> int:
    """
    A CLI for importing pharmacy product CSVs into Postgres.

    ## load
    Parse, validate and import a product CSV.
    - `--input` path to the CSV,
    - `--approve` how new categories are handled: `prompt` (ask for each), `all`, `none`,
    - `--dry-run` run everything against in-memory stores, write nothing,
    - `--show-errors` print every rejected row and warning.

    A one-line summary is printed on completion:
    - `pharmacy-import load --input data/products.csv --approve all`

    ## db
    - `init` (re)initializes the schema, `--sql` points at a `.sql` file or a directory of them.

    ## template
    Write the sample import CSV (`--output`, default `pharmacy_import_template.csv`).
    """
    p = argparse.ArgumentParser(prog="pharmacy-import")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    # load cmd
    load = sub.add_parser("load", help="Import a product CSV (with rejects).")
    load.add_argument("--input", required=True, help="Path to the product CSV.")
    load.add_argument("--approve", default="prompt", choices=["prompt", "all", "none"],
                      help="How to handle categories that do not exist yet.")
    load.add_argument("--dry-run", action="store_true", help="Validate and reconcile only; write nothing.")
    load.add_argument("--category", action="append", default=[], dest="categories",
                      help="Existing category name for --dry-run (repeatable).")
    load.add_argument("--show-errors", action="store_true", help="Print rejected rows and warnings.")

    # db cmd
    db = sub.add_parser("db", help="Database utilities.")
    db_sub = db.add_subparsers(dest="db_cmd", required=True)

    db_init_p = db_sub.add_parser("init", help="Initialize DB schema from SQL file(s).")
    db_init_p.add_argument("--sql", default="sql", help="Path to schema SQL file OR a directory of `.sql` files.")

    # template cmd
    template = sub.add_parser("template", help="Write a sample import CSV.")
    template.add_argument("--output", default=TEMPLATE_FILENAME, help="Where to write the template.")

    args = p.parse_args(argv)
    setup_logging(verbose=args.verbose)

    if args.cmd == "load":
        input_path = Path(args.input)
        if not input_path.is_file():
            logger.error("input file not found: %s", input_path)
            return 2

        settings = load_settings()
        approver = _approver(args.approve)
        try:
            if args.dry_run:
                summary, result = dry_run_file(
                    input_path=input_path,
                    approver=approver,
                    existing_categories=args.categories,
                    settings=settings,
                )
            else:
                with connect() as conn:
                    summary, result = load_file(conn, input_path=input_path, approver=approver, settings=settings)
        except DependencyFailure as e:
            logger.error("%s (created so far: %s)", e, sorted(e.created))
            return 1
        except ImportAborted as e:
            logger.error("import aborted: %s", e)
            return 1

        if args.show_errors:
            for line in result.errors:
                print(f"error: {line}")
            for line in result.warnings:
                print(f"warning: {line}")
        if summary.created_categories:
            log_summary(f"created categories: {', '.join(summary.created_categories)}")
        if summary.status == "cancelled":
            log_summary("import cancelled, nothing was loaded")

        print(summary.render_one_line())
        return 0

    if args.cmd == "db" and args.db_cmd == "init":
        db_init(sql_path=Path(args.sql))
        print(f"Initialized schema from {args.sql}")
        return 0

    if args.cmd == "template":
        out = write_template(Path(args.output))
        print(f"Wrote template to {out}")
        return 0

    return 2
