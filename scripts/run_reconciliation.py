"""
Run a reconciliation job by hand

Usage:
    python scripts/run_reconciliation.py gaps --max-token-id 3000
    python scripts/run_reconciliation.py sync --batch-size 100 --max-batches 5
    python scripts/run_reconciliation.py sync --start-token-id 1
    python scripts/run_reconciliation.py verify
    python scripts/run_reconciliation.py orphans --dry-run
    python scripts/run_reconciliation.py backfill --limit 50

Prints the job summary as JSON. Exits 1 on a fatal error (bad configuration,
chain or database unavailable); per-record failures are part of the summary.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config.logging import setup_logging
from src.core.errors import ReconciliationError
from src.database.engine import dispose_engine, get_session_maker
from src.services.reconciliation.service import get_reconciliation_service


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NFT cache reconciliation jobs")
    commands = parser.add_subparsers(dest="command", required=True)

    gaps = commands.add_parser("gaps", help="Report token ids missing from the cache")
    gaps.add_argument("--max-token-id", type=int, default=None)

    sync = commands.add_parser("sync", help="Import on-chain tokens into the cache")
    sync.add_argument("--batch-size", type=int, default=None)
    sync.add_argument("--start-token-id", type=int, default=None)
    sync.add_argument("--max-batches", type=int, default=None)

    verify = commands.add_parser("verify", help="Check cached tokens against ownerOf")
    verify.add_argument("--batch-size", type=int, default=None)
    verify.add_argument("--max-batches", type=int, default=None)

    orphans = commands.add_parser("orphans", help="Delete cached tokens missing on-chain")
    orphans.add_argument("--dry-run", action="store_true")

    backfill = commands.add_parser("backfill", help="Populate empty traits")
    backfill.add_argument("--limit", type=int, default=None)

    return parser


async def run_command(args: argparse.Namespace) -> dict:
    """Run one job and return its summary"""
    service = get_reconciliation_service()

    async with get_session_maker()() as session:
        if args.command == "gaps":
            report = await service.check_missing_tokens(session, args.max_token_id)
            return report.model_dump()
        if args.command == "sync":
            summary = await service.sync_from_chain(
                session,
                batch_size=args.batch_size,
                start_token_id=args.start_token_id,
                max_batches=args.max_batches,
            )
        elif args.command == "verify":
            summary = await service.verify_ownership(
                session, batch_size=args.batch_size, max_batches=args.max_batches
            )
        elif args.command == "orphans":
            summary = await service.sweep_orphans(session, dry_run=args.dry_run)
        else:
            summary = await service.backfill_traits(session, limit=args.limit)
        return summary.to_response()


async def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    try:
        result = await run_command(args)
    except (ReconciliationError, SQLAlchemyError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        await dispose_engine()

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main()))
