# wrappers/delivery_wrapper.py
import logging
from typing import Dict, List, Sequence, Tuple

from agents.address_agent.models import EMAIL_COL, ORIGINAL_ADDRESS_COL, VERIFIED_ADDRESS_COL
from agents.delivery.mailer import send_batch_address_verification_emails
from agents.delivery.relay import send_to_relay

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def collect_email_entries(merged_rows: Sequence[Dict[str, str]]) -> List[Tuple[str, str, str]]:
    """(email, original, verified) for every merged row that has both an email and an address."""
    entries = []
    for row in merged_rows:
        email = (row.get(EMAIL_COL) or "").strip()
        original = row.get(ORIGINAL_ADDRESS_COL) or ""
        if not email or not original:
            continue
        entries.append((email, original, row.get(VERIFIED_ADDRESS_COL) or ""))
    return entries


def run_delivery(
    blob: bytes,
    filename: str,
    merged_rows: Sequence[Dict[str, str]],
    send_relay: bool = True,
    send_emails: bool = False,
) -> List[str]:
    """
    Run the secondary dispatchers one after another once the workbook exists.

    Each failure is reported as a status message and never stops the next
    dispatcher; the workbook itself is already committed by the caller.
    """
    messages = []

    if send_relay:
        try:
            send_to_relay(blob, filename)
            messages.append("File sent to relay channel successfully")
        except Exception as e:
            logger.error("[Delivery] Relay failed: %s", e)
            messages.append(f"Failed to send to relay channel: {e}")

    if send_emails:
        entries = collect_email_entries(merged_rows)
        if not entries:
            messages.append("No rows with a customer email, skipped confirmation emails")
        else:
            try:
                sent = send_batch_address_verification_emails(entries)
                messages.append(f"Confirmation emails sent to {sent} customers")
            except Exception as e:
                logger.error("[Delivery] Batch email failed: %s", e)
                messages.append(f"Failed to send confirmation emails: {e}")

    return messages
