from __future__ import annotations

"""
Walk the quotation wizard end to end without the UI and export the result.

Fills in a demo client, picks catalog services (and optionally one AI-described custom service),
optionally polishes the notes, then exports from the review step. Without an OPENAI_API_KEY the
AI steps use their built-in fallback content, so the script also works offline.

Usage:
  python3 scripts/export_demo_quote.py
  python3 scripts/export_demo_quote.py --service web --service seo_system --format png
  python3 scripts/export_demo_quote.py --custom "Quarterly brand photo shoot" --custom-price 1200 --enhance
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

# Allow running as `python3 scripts/export_demo_quote.py` (module imports live at repo root).
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from logging_config import setup_logging
from pricing_engine import format_money
from quote_config import load_config
from quote_export import ExportFormat
from quote_model import BillingCycle
from quote_wizard import WizardController
from service_catalog import SERVICE_CATALOG

logger = logging.getLogger("export_demo_quote")

_DEMO_CLIENT = {
    "client_name": "Northwind Traders",
    "client_email": "ops@northwind.example",
    "client_address": "221 Harbour Road\nSeattle, WA",
    "client_phone": "+1 206 555 0100",
    "client_website": "northwind.example",
    "client_budget": "9000",
}


def _wait(ctl: WizardController, future) -> None:
    if future is not None:
        future.result()
        ctl.pump_events()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Build a demo quotation and export it as PDF or PNG.")
    parser.add_argument(
        "--service",
        action="append",
        choices=[s.id for s in SERVICE_CATALOG],
        help="Catalog service to include (repeatable; default: web + paid_social).",
    )
    parser.add_argument("--custom", default="", help="Free-text description of an extra custom service.")
    parser.add_argument("--custom-price", default="", help="Price for the custom service.")
    parser.add_argument(
        "--custom-billing",
        default=BillingCycle.FIXED.value,
        choices=[b.value for b in BillingCycle],
        help="Billing cycle for the custom service.",
    )
    parser.add_argument("--enhance", action="store_true", help="Rewrite the notes with AI before exporting.")
    parser.add_argument("--format", default=ExportFormat.PDF.value, choices=[f.value for f in ExportFormat])
    parser.add_argument("--out-dir", default=None, help="Export directory (default: QUOTE_EXPORT_DIR or ./exports).")
    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(level=config.log_level, json_lines=config.log_json)
    ctl = WizardController.from_config(config)
    if args.out_dir:
        ctl.export_pipeline.output_dir = Path(args.out_dir).resolve()

    try:
        for name, value in _DEMO_CLIENT.items():
            ctl.set_field(name, value)
        if not ctl.advance():
            logger.error("Client details step did not validate")
            return 1

        for service_id in args.service or ["web", "paid_social"]:
            if not ctl.is_service_selected(service_id):
                ctl.toggle_service(service_id)
        if args.custom:
            future = ctl.request_custom_service(args.custom, args.custom_price, args.custom_billing)
            if future is None:
                logger.error("Custom service needs a description and a valid --custom-price")
                return 2
            _wait(ctl, future)
        if not ctl.advance():
            logger.error("No services selected")
            return 1

        if args.enhance:
            _wait(ctl, ctl.request_enhance_notes())

        _wait(ctl, ctl.request_export(ExportFormat(args.format)))
    finally:
        ctl.close()

    if ctl.last_export is None:
        logger.error("Export failed")
        return 1
    total = format_money(ctl.grand_total, ctl.draft.currency)
    print(f"Wrote {ctl.last_export.path} ({ctl.draft.quote_number}, total {total})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
