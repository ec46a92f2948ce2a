#!/usr/bin/env python3
"""
Run the Site 1 / Site 2 reconciliation.

Usage:
    python reconcile.py --from 01/01/2025 --to 31/01/2025 [--applicationNo ...]
        [--headless true|false] [--maxRows N] [--outDir ./out] [--env uat|prod]
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from pathlib import Path

# Add project root to PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.config import load_settings
from plugins.reconcile.models import SearchFilters
from plugins.reconcile.runner import run_reconcile


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _bool(value: str) -> bool:
    return value.lower() == "true"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile Site 1 applications against Site 2")
    parser.add_argument("--from", dest="from_date", help="Start date DD/MM/YYYY (required)")
    parser.add_argument("--to", dest="to_date", help="End date DD/MM/YYYY (required)")
    parser.add_argument("--applicationNo")
    parser.add_argument("--presaleNo")
    parser.add_argument("--emiratesId")
    parser.add_argument("--trafficNo")
    parser.add_argument("--chassisNo")
    parser.add_argument("--status")
    parser.add_argument("--headless", type=_bool, default=True)
    parser.add_argument("--maxRows", type=int, default=0)
    parser.add_argument("--outDir", default=None)
    parser.add_argument("--env", choices=["uat", "prod"], default="uat")
    parser.add_argument("--config", default=None)
    return parser


def setup_logging(level: str, logs_dir: Path) -> Path:
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"run-{int(time.time() * 1000)}.log"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(), logging.FileHandler(log_file, encoding="utf-8")],
    )
    return log_file


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.from_date or not args.to_date:
        parser.error("Mandatory date range missing. Use --from DD/MM/YYYY and --to DD/MM/YYYY before running.")

    settings = load_settings(args.config)
    cfg = settings.reconcile
    setup_logging(settings.log_level, Path(cfg.artifacts_dir) / "logs")
    logger = logging.getLogger(__name__)

    filters = SearchFilters(
        from_date=args.from_date,
        to_date=args.to_date,
        application_no=args.applicationNo,
        presale_no=args.presaleNo,
        emirates_id=args.emiratesId,
        traffic_no=args.trafficNo,
        chassis_no=args.chassisNo,
        status=args.status,
    )

    try:
        asyncio.run(
            run_reconcile(
                filters,
                cfg,
                env=args.env,
                headless=args.headless,
                max_rows=args.maxRows,
                out_dir=args.outDir,
                site1_url=os.getenv("SITE1_URL"),
                site2_url=os.getenv("SITE2_URL"),
            )
        )
    except Exception as e:
        logger.exception(f"Reconciliation failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
