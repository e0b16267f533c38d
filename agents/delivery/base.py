# agents/delivery/base.py
import logging
from typing import Dict, Optional

import requests

from agents.address_agent import config

logger = logging.getLogger(__name__)

UA = "AddressVerify-Agent/1.0"


class DeliveryError(RuntimeError):
    pass


def post_json(url: str, payload: Dict, headers: Optional[Dict[str, str]] = None,
              error_cls: type = DeliveryError) -> requests.Response:
    """POST a JSON payload once; any transport error or non-2xx status raises ``error_cls``."""
    all_headers = {"User-Agent": UA}
    if headers:
        all_headers.update(headers)
    try:
        resp = requests.post(url, json=payload, headers=all_headers, timeout=config.delivery_timeout())
    except requests.RequestException as e:
        raise error_cls(f"Request to {url} failed: {e}") from e
    if resp.status_code >= 300:
        body = (resp.text or "")[:300]
        raise error_cls(f"{url} returned HTTP {resp.status_code}: {body}")
    return resp
