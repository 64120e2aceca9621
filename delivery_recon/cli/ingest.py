#!/usr/bin/env python3
"""
Batch ingestion of platform export files from disk

Examples:
  python -m delivery_recon.cli.ingest --platform doordash --client-id 1 exports/doordash_oct6.csv
  python -m delivery_recon.cli.ingest --platform ubereats --client-id 1 \\
      --replace-week 2025-10-06 2025-10-12 exports/uber_oct6.csv
  python -m delivery_recon.cli.ingest --client-id 1 --master-list locations.xlsx
"""
import argparse
import json
import logging
import sys

from delivery_recon.core.config import config
from delivery_recon.core.database import db_manager
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import AppException
from delivery_recon.logging_config import setup_logging
from delivery_recon.services.ingestion_service import IngestionService
from delivery_recon.services.location_service import LocationService
from delivery_recon.services.upsert_batcher import delete_week

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Ingest delivery platform exports into the consolidated store',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('files', nargs='*', help='Export files (CSV or Excel) to ingest, in order')
    parser.add_argument(
        '--platform',
        choices=[p.value for p in Platform],
        help='Platform the files come from'
    )
    parser.add_argument('--client-id', type=int, required=True, help='Client the files belong to')
    parser.add_argument(
        '--replace-week',
        nargs=2,
        metavar=('WEEK_START', 'WEEK_END'),
        help='Delete the client\'s platform rows in this date range before ingesting'
    )
    parser.add_argument('--master-list', help='Import a master location list before ingesting')
    parser.add_argument('--json', action='store_true', help='Print results as JSON')
    return parser


def run(args: argparse.Namespace) -> int:
    if args.files and not args.platform:
        logger.error("❌ --platform is required when ingesting files")
        return 2
    if args.replace_week and not args.platform:
        logger.error("❌ --platform is required with --replace-week")
        return 2

    db_manager.create_tables()
    service = IngestionService()
    failures = 0

    with db_manager.get_sync_session() as session:
        if args.master_list:
            with open(args.master_list, 'rb') as f:
                summary = LocationService().import_master_list(session, f.read(), args.master_list, args.client_id)
            print(json.dumps({"master_list": summary}) if args.json else f"Master list: {summary}")

        if args.replace_week:
            deleted = delete_week(session, Platform.from_string(args.platform), args.client_id, *args.replace_week)
            if args.json:
                print(json.dumps({"deleted": deleted}))
            else:
                print(f"Deleted {deleted} row(s) between {args.replace_week[0]} and {args.replace_week[1]}")

        for path in args.files:
            result = service.ingest_file(session, path, args.platform, args.client_id)
            if not result.success:
                failures += 1
            if args.json:
                print(json.dumps(result.to_dict(), default=str))
            else:
                status = "✅" if result.success else "❌"
                print(
                    f"{status} {path}: {result.rows_processed} processed, {result.rows_rejected} rejected, "
                    f"{result.rows_written} written, {result.unmapped_rows} unmapped"
                    + (f" - {result.error}" if result.error else "")
                )

    return 1 if failures else 0


def main(argv=None) -> int:
    setup_logging(config.log_level)
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except AppException as e:
        logger.error(f"❌ {e.message} {e.details or ''}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
