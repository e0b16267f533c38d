# agents/delivery/relay.py
import base64
import logging

from agents.address_agent import config
from .base import DeliveryError, post_json

logger = logging.getLogger(__name__)

EMAILJS_URL = "https://api.emailjs.com/api/v1.0/email/send"
RELAY_SUBJECT = "New Verified Addresses"
RELAY_MESSAGE = "New batch of verified addresses is attached."


class RelayDeliveryError(DeliveryError):
    pass


def send_to_relay(blob: bytes, filename: str) -> None:
    """Forward a file as a base64 attachment through EmailJS to the team inbox."""
    attachment = base64.b64encode(blob).decode("ascii")

    payload = {
        "service_id": config.require("EMAILJS_SERVICE_ID"),
        "template_id": config.require("EMAILJS_TEMPLATE_ID"),
        "user_id": config.require("EMAILJS_PUBLIC_KEY"),
        "template_params": {
            "to_email": config.require("RELAY_TO_EMAIL"),
            "subject": RELAY_SUBJECT,
            "message": RELAY_MESSAGE,
            "attachment": attachment,
            "filename": filename,
        },
    }
    private_key = config.optional("EMAILJS_PRIVATE_KEY")
    if private_key:
        payload["accessToken"] = private_key

    post_json(EMAILJS_URL, payload, error_cls=RelayDeliveryError)
    logger.info("Relayed %s (%d bytes)", filename, len(blob))
