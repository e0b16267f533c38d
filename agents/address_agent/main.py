# agents/address_agent/main.py
import argparse
import asyncio
import logging
import os
import sys

from .extractor import read_rows
from .io_utils import OUTPUT_FILENAME, build_workbook_bytes, save_to_disk
from .pipeline import process_rows_async

logger = logging.getLogger("address_agent.main")


def _setup_logging():
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
        root.addHandler(handler)
    root.setLevel(logging.INFO)


# -------------------- CLI Entry Point -------------------- #
def run_cli(argv=None):
    parser = argparse.ArgumentParser(description="Verify shipping addresses from a CSV/XLSX export")
    parser.add_argument("--input", required=True, help="Path to input CSV or XLSX")
    parser.add_argument("--output-dir", default=".", help="Directory for verified_addresses.xlsx")
    parser.add_argument("--relay", action="store_true", help="Also relay the workbook by email attachment")
    parser.add_argument("--concurrency", type=int, default=None, help="Max simultaneous normalizer calls")
    args = parser.parse_args(argv)

    _setup_logging()

    if not os.path.exists(args.input):
        print(f"❌ Input file not found: {args.input}", file=sys.stderr)
        sys.exit(1)

    with open(args.input, "rb") as f:
        data = f.read()

    rows = read_rows(data, os.path.basename(args.input))
    merged = asyncio.run(process_rows_async(rows, concurrency=args.concurrency))
    blob = build_workbook_bytes(merged)
    output_path = save_to_disk(blob, OUTPUT_FILENAME, args.output_dir)
    print(f"✅ Verified {len(merged)} rows. Output saved to {output_path}")

    if args.relay:
        from agents.delivery.relay import send_to_relay
        try:
            send_to_relay(blob, OUTPUT_FILENAME)
            print("File sent to relay channel successfully")
        except Exception as e:
            logger.error("Relay failed: %s", e)
            print(f"⚠️ Failed to send to relay channel: {e}", file=sys.stderr)


# -------------------- Script Entry -------------------- #
if __name__ == "__main__":
    run_cli()
