# wrappers/address_wrapper.py
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from agents.address_agent.extractor import read_rows
from agents.address_agent.io_utils import build_workbook_bytes
from agents.address_agent.models import VerifiedAddress
from agents.address_agent.normalizer import verify_address
from agents.address_agent.pipeline import process_rows_async, merged_rows_to_dataframe

# ------------------------------------------
# Logging setup
# ------------------------------------------
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# ------------------------------------------
# Single address flow
# ------------------------------------------
def run_single_verification(address: str) -> VerifiedAddress:
    """
    Verify one address for the UI. Unlike the batch flow, failures here
    (blank input, missing configuration) propagate so the caller can show them.
    """
    try:
        verified = verify_address(address)
    except Exception as e:
        logger.error("[Single] Verification failed: %s", e)
        raise
    logger.info("[Single] Verified %r -> %r", address, verified.fullAddress)
    return verified


# ------------------------------------------
# Batch flow
# ------------------------------------------
def run_address_agent(
    data: bytes,
    filename: str,
    on_progress: Optional[Callable[[int, int], None]] = None,
    concurrency: Optional[int] = None,
) -> Tuple[List[Dict[str, str]], bytes]:
    """
    Read an uploaded file, verify every row and build the output workbook.

    Args:
        data (bytes): Raw upload.
        filename (str): Upload name, used to pick the CSV or XLSX reader.
        on_progress (callable | None): ``(done, total)`` progress hook.
        concurrency (int | None): Cap on simultaneous normalizer calls.

    Returns:
        tuple: (merged rows, XLSX bytes)
    """
    rows = read_rows(data, filename)
    logger.info("[Address] Running address agent on %d rows...", len(rows))

    merged = asyncio.run(process_rows_async(rows, concurrency=concurrency, on_progress=on_progress))
    if len(merged) != len(rows):
        raise RuntimeError(f"Address agent returned {len(merged)} rows for {len(rows)} inputs")

    blob = build_workbook_bytes(merged)
    logger.info("[Address] Agent completed successfully. Output rows: %d", len(merged))
    return merged, blob


def merged_preview(merged: List[Dict[str, str]], limit: int = 30) -> pd.DataFrame:
    df = merged_rows_to_dataframe(merged)
    return df.head(limit)
