from __future__ import annotations

import argparse
import logging
import os
import time
from datetime import date
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import AppConfig, load_config
from .download import invoice_filename
from .errors import AuthenticationError, InitializationError
from .harvester import run_harvest
from .logging_config import configure_logging
from .models import RunOutcome, RunResult
from .reporter import LoggingReporter
from .state import StateStore
from .tracker import CompletionTracker
from .util.dates import parse_iso_date


logger = logging.getLogger("endesa_invoice_sync")

# Used when neither --since nor a stored watermark exists: download everything listed.
EPOCH_WATERMARK = date(1970, 1, 1)

EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_AUTH_FAILED = 2
EXIT_INIT_FAILED = 3


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="endesa_invoice_sync")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    harvest = sub.add_parser("harvest", help="Download invoices issued after the stored watermark")
    harvest.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    harvest.add_argument(
        "--since",
        default="",
        help="Override the watermark: only invoices issued strictly after this date (YYYY-MM-DD) are downloaded.",
    )
    harvest.add_argument("--output-dir", default="", help="Override output_dir from the config.")
    harvest.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    harvest.add_argument("--slowmo-ms", type=int, default=0, help="Playwright slow motion in milliseconds (debug).")
    harvest.add_argument(
        "--no-save-watermark",
        action="store_true",
        help="Do not advance the stored watermark after the run.",
    )

    show = sub.add_parser("show-watermark", help="Print the stored watermark and the invoices downloaded so far")
    show.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")

    set_wm = sub.add_parser("set-watermark", help="Store a watermark manually (e.g. after a fresh install)")
    set_wm.add_argument("date", help="Watermark date (YYYY-MM-DD)")
    set_wm.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")

    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    cfg = load_config(args.config)
    configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path)
    portal_key = cfg.portal.base_url

    if args.cmd == "show-watermark":
        state = StateStore(cfg.state.db_path)
        try:
            wm = state.get_watermark(portal_key)
            downloaded = state.list_downloaded()
        finally:
            state.close()
        print(wm.isoformat() if wm else "(none)")
        for inv in downloaded:
            print(f"  {inv.invoice_date.isoformat()}  {inv.filename}")
        return EXIT_OK

    if args.cmd == "set-watermark":
        value = parse_iso_date(args.date)
        state = StateStore(cfg.state.db_path)
        try:
            state.set_watermark(portal_key, value)
        finally:
            state.close()
        logger.info("Watermark set to %s", value.isoformat())
        return EXIT_OK

    if args.cmd == "harvest":
        _require_portal_auth(cfg)
        return _harvest(cfg, args)

    raise AssertionError("Unhandled command")


def _require_portal_auth(cfg: AppConfig) -> None:
    if cfg.portal.has_credentials:
        return
    raise SystemExit("Missing portal login. Set PORTAL_USERNAME and PORTAL_PASSWORD in your .env.")


def _harvest(cfg: AppConfig, args: argparse.Namespace) -> int:
    options = cfg.harvest_options()
    if args.headful:
        options = options.model_copy(update={"headless": False})
    if args.slowmo_ms:
        options = options.model_copy(update={"slow_mo_ms": args.slowmo_ms})

    download_dir = Path(args.output_dir) / cfg.portal.download_subdir if args.output_dir else cfg.download_dir

    state = StateStore(cfg.state.db_path)
    run_id = state.record_run_start()
    t0 = time.time()
    try:
        stored = state.get_watermark(cfg.portal.base_url)
        if args.since:
            watermark = parse_iso_date(args.since)
        else:
            watermark = stored or EPOCH_WATERMARK
        logger.info("Run started (run_id=%s watermark=%s)", run_id, watermark.isoformat())

        try:
            result = run_harvest(
                credentials=cfg.portal.credentials(),
                watermark=watermark,
                download_dir=download_dir,
                formats=cfg.documents,
                options=options,
                reporter=LoggingReporter(),
            )
        except AuthenticationError as e:
            state.record_run_finish(run_id, ok=False, message=f"login failed: {e}")
            return EXIT_AUTH_FAILED
        except InitializationError as e:
            state.record_run_finish(run_id, ok=False, message=f"init failed: {e}")
            return EXIT_INIT_FAILED

        _record_result(cfg, state, result, watermark=watermark, save_watermark=not args.no_save_watermark)

        outcome = CompletionTracker.classify(result.total_candidates, result.downloaded_count)
        ok = result.error is None and outcome in (RunOutcome.NOTHING_TO_DO, RunOutcome.FULL_SUCCESS)
        message = result.error or f"{outcome.value} ({result.downloaded_count}/{result.total_candidates})"
        state.record_run_finish(run_id, ok=ok, message=message)
        logger.info(
            "Run finished (run_id=%s ok=%s seconds=%.2f)",
            run_id,
            "true" if ok else "false",
            time.time() - t0,
        )
        return EXIT_OK if ok else EXIT_INCOMPLETE
    except Exception as e:
        state.record_run_finish(run_id, ok=False, message=str(e))
        logger.error("Run failed (run_id=%s ok=false seconds=%.2f)", run_id, time.time() - t0)
        raise
    finally:
        state.close()


def _record_result(
    cfg: AppConfig,
    state: StateStore,
    result: RunResult,
    *,
    watermark: date,
    save_watermark: bool,
) -> None:
    for d in result.downloaded_dates:
        state.mark_downloaded(filename=invoice_filename(d, cfg.documents), invoice_date=d)

    if not save_watermark:
        return
    new_wm = result.next_watermark(watermark)
    if new_wm == watermark:
        return
    stored = state.get_watermark(cfg.portal.base_url)
    # --since may point before the stored watermark; never move the stored value backward.
    if stored is not None and new_wm <= stored:
        return
    state.set_watermark(cfg.portal.base_url, new_wm)
    logger.info("Watermark advanced to %s", new_wm.isoformat())
