# agents/address_agent/pipeline.py
import asyncio
import inspect
import logging
from functools import partial
from typing import Callable, Dict, List, Mapping, Optional

import pandas as pd
from tqdm.asyncio import tqdm_asyncio

from . import config
from .extractor import construct_full_address, dataframe_to_rows
from .io_utils import output_columns
from .models import (
    NAME_COL,
    COMPANY_COL,
    ZONE_COL,
    SHIPPING_COLUMNS,
    OUTPUT_COLUMNS,
    ORIGINAL_ADDRESS_COL,
    VERIFIED_ADDRESS_COL,
    VERIFIED_COLUMNS,
    VERIFIED_FIELD_COLUMNS,
    VERIFIED_PREFIX,
    VerifiedAddress,
)
from .normalizer import get_client, verify_address

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


# =========================================================
# ROW MERGING
# =========================================================
def _extra_columns(row: Mapping[str, str]) -> Dict[str, str]:
    return {k: v for k, v in row.items() if k not in OUTPUT_COLUMNS}


def build_blank_row(row: Mapping[str, str]) -> Dict[str, str]:
    """MergedRow for a row without any address fields: nothing was verified."""
    merged = {col: row.get(col) or "" for col in SHIPPING_COLUMNS}
    merged[ORIGINAL_ADDRESS_COL] = ""
    merged[VERIFIED_ADDRESS_COL] = ""
    for col in VERIFIED_COLUMNS:
        merged[col] = ""
    merged.update(_extra_columns(row))
    return merged


def build_merged_row(
    row: Mapping[str, str],
    original_address: str,
    verified: VerifiedAddress,
) -> Dict[str, str]:
    merged = {col: row.get(col) or "" for col in SHIPPING_COLUMNS}
    merged[ORIGINAL_ADDRESS_COL] = original_address
    merged[VERIFIED_ADDRESS_COL] = verified.fullAddress

    # Name and company are not normalized, carry them over
    merged[VERIFIED_PREFIX + NAME_COL] = row.get(NAME_COL) or ""
    merged[VERIFIED_PREFIX + COMPANY_COL] = row.get(COMPANY_COL) or ""
    for field_name, col in VERIFIED_FIELD_COLUMNS.items():
        merged[col] = getattr(verified, field_name)
    if not verified.zone:
        merged[VERIFIED_FIELD_COLUMNS["zone"]] = row.get(ZONE_COL) or ""

    merged.update(_extra_columns(row))
    return merged


# =========================================================
# BATCH VERIFIER
# =========================================================
async def _call_verify(verify_func: Callable, address: str) -> VerifiedAddress:
    if inspect.iscoroutinefunction(verify_func):
        return await verify_func(address)
    return await asyncio.to_thread(verify_func, address)


async def verify_address_batch(
    addresses: List[str],
    verify_func: Optional[Callable] = None,
    concurrency: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[VerifiedAddress]:
    """
    Verify every address concurrently, one normalizer call each.

    Calls are launched together and throttled by a semaphore. Results are
    stored by originating index, so the output order always matches the input.
    A failing address gets the fallback record instead of aborting the batch.
    """
    if verify_func is None:
        verify_func = partial(verify_address, client=get_client())
    if concurrency is None:
        concurrency = config.verify_concurrency()

    total = len(addresses)
    results: List[Optional[VerifiedAddress]] = [None] * total
    semaphore = asyncio.Semaphore(concurrency)
    done = 0

    async def worker(idx: int, address: str) -> None:
        nonlocal done
        async with semaphore:
            try:
                verified = await _call_verify(verify_func, address)
                if not isinstance(verified, VerifiedAddress):
                    raise TypeError(f"Normalizer returned {type(verified).__name__}")
            except Exception as e:
                logger.warning("Verification failed for row %d (%r), using fallback: %s", idx, address, e)
                verified = VerifiedAddress.fallback(address)
        results[idx] = verified
        done += 1
        if on_progress:
            on_progress(done, total)

    tasks = [worker(idx, address) for idx, address in enumerate(addresses)]
    await tqdm_asyncio.gather(*tasks, desc="Verifying addresses", total=total)
    return results


async def process_rows_async(
    rows: List[Mapping[str, str]],
    verify_func: Optional[Callable] = None,
    concurrency: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[Dict[str, str]]:
    """Turn RawRows into MergedRows, one for one and in order."""
    originals = [construct_full_address(row) for row in rows]
    pending = [idx for idx, address in enumerate(originals) if address is not None]
    skipped = len(rows) - len(pending)
    logger.info("Verifying %d addresses (%d rows without an address skipped)", len(pending), skipped)

    if skipped and on_progress:
        on_progress(skipped, len(rows))

    def _row_progress(done: int, _total: int) -> None:
        if on_progress:
            on_progress(skipped + done, len(rows))

    verified_list = []
    if pending:
        verified_list = await verify_address_batch(
            [originals[idx] for idx in pending],
            verify_func=verify_func,
            concurrency=concurrency,
            on_progress=_row_progress,
        )
    verified_by_row = dict(zip(pending, verified_list))

    merged = []
    for idx, row in enumerate(rows):
        if idx in verified_by_row:
            merged.append(build_merged_row(row, originals[idx], verified_by_row[idx]))
        else:
            merged.append(build_blank_row(row))

    logger.info("Batch complete: %d rows, %d sent for verification", len(merged), len(pending))
    return merged


def merged_rows_to_dataframe(merged: List[Mapping[str, str]]) -> pd.DataFrame:
    return pd.DataFrame(list(merged), columns=output_columns(merged)).fillna("")


def address_agent_logic(
    df: pd.DataFrame,
    verify_func: Optional[Callable] = None,
    concurrency: Optional[int] = None,
) -> pd.DataFrame:
    """Verify every row of a DataFrame and return the merged DataFrame."""
    rows = dataframe_to_rows(df.fillna("").astype(str), skip_empty=False)
    merged = asyncio.run(process_rows_async(rows, verify_func=verify_func, concurrency=concurrency))
    return merged_rows_to_dataframe(merged)
