# agents/delivery/mailer.py
import base64
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from agents.address_agent import config
from .base import DeliveryError, post_json

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
SUBJECT = "Please Confirm Your Updated Address"
MAX_PERSONALIZATIONS = 1000  # SendGrid limit per request

DEFAULT_TEMPLATE = """Dear {{customer_name}},

We've recently reviewed and verified your shipping address in our system. Please take a moment to confirm if the updated address is correct:

Original Address:
{{original_address}}

Verified Address:
{{verified_address}}

Please click one of the links below to confirm:
[Yes, this is correct] - {{confirmation_url}}
[No, this needs correction] - {{correction_url}}

If you have any questions or concerns, please don't hesitate to reach out to us.

Best regards,
Your Company Name"""

TEMPLATE_TOKENS = [
    "customer_name",
    "original_address",
    "verified_address",
    "confirmation_url",
    "correction_url",
]


class EmailDeliveryError(DeliveryError):
    pass


def customer_name_from_email(email: str) -> str:
    return email.split("@")[0]


def build_confirmation_url(app_url: str, email: str, status: str) -> str:
    """Link back to the app carrying the base64 recipient and a correct/incorrect flag."""
    token = base64.b64encode(email.encode("utf-8")).decode("ascii")
    return f"{app_url.rstrip('/')}/confirm-address?id={token}&status={status}"


def template_data(email: str, original_address: str, verified_address: str, app_url: str) -> Dict[str, str]:
    return {
        "customer_name": customer_name_from_email(email),
        "original_address": original_address,
        "verified_address": verified_address,
        "confirmation_url": build_confirmation_url(app_url, email, "correct"),
        "correction_url": build_confirmation_url(app_url, email, "incorrect"),
    }


def render_template(template: str, email: str, original_address: str,
                    verified_address: str, app_url: str) -> str:
    """Replace the first occurrence of each {{token}} literally."""
    body = template
    for token, value in template_data(email, original_address, verified_address, app_url).items():
        body = body.replace("{{" + token + "}}", value, 1)
    return body


def _auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {config.require('SENDGRID_API_KEY')}"}


def send_address_verification_email(
    to_email: str,
    original_address: str,
    verified_address: str,
    custom_template: Optional[str] = None,
) -> None:
    template = custom_template or DEFAULT_TEMPLATE
    html = render_template(template, to_email, original_address, verified_address, config.require("APP_URL"))

    payload = {
        "personalizations": [{"to": [{"email": to_email}]}],
        "from": {"email": config.require("FROM_EMAIL")},
        "subject": SUBJECT,
        "content": [{"type": "text/html", "value": html}],
    }
    post_json(SENDGRID_URL, payload, headers=_auth_headers(), error_cls=EmailDeliveryError)
    logger.info("Verification email sent to %s", to_email)


def send_batch_address_verification_emails(entries: Iterable[Tuple[str, str, str]]) -> int:
    """
    Send one templated message per (email, original, verified) entry using the
    registered SendGrid dynamic template. Returns the number of recipients.
    """
    entries = list(entries)
    if not entries:
        return 0

    app_url = config.require("APP_URL")
    from_email = config.require("FROM_EMAIL")
    template_id = config.require("SENDGRID_TEMPLATE_ID")
    headers = _auth_headers()

    personalizations: List[Dict] = [
        {
            "to": [{"email": email}],
            "dynamic_template_data": template_data(email, original, verified, app_url),
        }
        for email, original, verified in entries
    ]
    for start in range(0, len(personalizations), MAX_PERSONALIZATIONS):
        payload = {
            "personalizations": personalizations[start:start + MAX_PERSONALIZATIONS],
            "from": {"email": from_email},
            "template_id": template_id,
        }
        post_json(SENDGRID_URL, payload, headers=headers, error_cls=EmailDeliveryError)

    logger.info("Batch verification emails sent to %d recipients", len(entries))
    return len(entries)
