# Project: pgbulk - bulk-load delimited files into PostgreSQL in one transaction
import argparse
import asyncio
import sys

import asyncpg

from .core.exceptions import PGBulkError
from .core.job import PGBulk
from .setup.config import load_job_config
from .setup.logging import configure_logging, get_logger

logger = get_logger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Bulk-load CSV files into PostgreSQL tables in a single transaction.",
        epilog="""
Examples:
  %(prog)s --job job.json --dir data/ --pattern "users-*.csv"
    Load every matching file with the tables described in job.json

  %(prog)s --job job.json --dir data/ --force-staging --drop-indexes
    Go through the staging table and suspend indexes during the merge

Connection settings come from the job file or from POSTGRES_HOST,
POSTGRES_PORT, POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_DBNAME
(or POSTGRES_DSN), optionally read from --env-file.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--job", required=True, help="JSON job file (tables, flags, csv options)")
    parser.add_argument("--env-file", default=None, help="Environment file (default: .env)")
    parser.add_argument(
        "--dir", dest="directories", action="append", required=True,
        help="Directory holding input files (repeatable)",
    )
    parser.add_argument("--pattern", default="*", help="Glob pattern relative to each directory")

    flags = parser.add_argument_group("Job overrides")
    flags.add_argument("--force-staging", action="store_true", default=None, help="Always use a staging table")
    flags.add_argument("--drop-indexes", action="store_true", default=None, help="Suspend indexes during the merge")
    flags.add_argument(
        "--drop-foreign-keys", action="store_true", default=None,
        help="Suspend non-primary-key constraints during the merge",
    )
    flags.add_argument("--quiet", action="store_true", default=None, help="Do not log progress")
    flags.add_argument("--no-log-files", action="store_true", help="Log to the console only")
    return parser.parse_args(argv)


async def run(args) -> int:
    config = load_job_config(
        args.job,
        env_file=args.env_file,
        force_staging=args.force_staging,
        drop_indexes=args.drop_indexes,
        drop_foreign_keys=args.drop_foreign_keys,
        quiet=args.quiet,
    )

    async with PGBulk(config) as job:
        for directory in args.directories:
            job.register(directory, args.pattern)
        result = await job.start()

    if not config.quiet:
        print(
            f"{result.strategy} load: {result.rows_copied:,} rows from {result.files} file(s) "
            f"in {result.elapsed_seconds:.2f}s"
        )
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    if not args.quiet:
        configure_logging(to_files=not args.no_log_files)

    try:
        return asyncio.run(run(args))
    except (PGBulkError, asyncpg.PostgresError) as e:
        logger.error(f"[ERROR] {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
