from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from exam_import.db.store import StagingStore
from exam_import.workflow.batch import BatchDriver, format_summary
from exam_import.workflow.core import WorkflowCore
from exam_import.workflow.staging import StagingWriter
from exam_import.workflow.utils.settings import default_settings, load_env


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Batch import exam-paper PDFs into the staged question table.")
    parser.add_argument("--folder", default="./pdfs", help="Directory containing the PDFs (default: ./pdfs)")
    parser.add_argument("--concurrency", type=int, default=None, help="Files processed in parallel per group (default: 3)")
    parser.add_argument("--dry-run", action="store_true", help="Run every stage but write nothing")
    parser.add_argument("--db-url", default=None, help="Database URL or SQLite path (default: $DB_URL)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    load_env()
    args = build_parser().parse_args(argv)
    settings = default_settings()
    concurrency = args.concurrency or settings.batch_concurrency

    print("Batch PDF Import")
    print(f"   Folder: {args.folder}")
    print(f"   Concurrency: {concurrency}")
    print(f"   Dry run: {args.dry_run}")
    print("")

    if not Path(args.folder).is_dir():
        print(f"Folder not found: {args.folder}", file=sys.stderr)
        return 1

    store = None if args.dry_run else StagingStore(args.db_url or settings.db_url)
    try:
        driver = BatchDriver(
            args.folder,
            WorkflowCore.from_settings(settings),
            StagingWriter(store) if store is not None else None,
            concurrency=concurrency,
            dry_run=args.dry_run,
        )
        try:
            progress = driver.run()
        except FileNotFoundError as exc:
            print(str(exc), file=sys.stderr)
            return 1
    finally:
        if store is not None:
            store.close()

    print("")
    print(format_summary(progress))
    return 0


if __name__ == "__main__":
    sys.exit(main())
