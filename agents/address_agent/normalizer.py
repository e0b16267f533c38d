# agents/address_agent/normalizer.py
import json
import logging
from typing import Optional

from openai import OpenAI

from . import config
from .models import VerifiedAddress, VERIFIED_ADDRESS_FIELDS

logger = logging.getLogger(__name__)

# =========================================================
# PROMPTS
# =========================================================
VERIFY_SYSTEM_PROMPT = """You are an address verification expert. Given an address, verify, correct, and complete it to its proper format based on country-specific rules.
Format your response as a JSON object with these exact fields:
{
  "address1": "primary address line",
  "address2": "secondary address line or empty string",
  "address3": "tertiary address line or empty string",
  "city": "verified city/suburb/locality",
  "state": "state/county/region",
  "zone": "zone if applicable or empty string",
  "postalCode": "postal code or 0000 if none",
  "country": "full country name",
  "fullAddress": "complete formatted address"
}

Country-specific rules:

Australia:
- State: use the territory abbreviation (NSW, VIC, QLD, ...)
- Postcode: 4 digits
- Units: keep "Unit #/##" or "U #/##" as written
- Street ranges: keep hyphenated ranges when a property spans several numbers (e.g. 92-94)
- Example: "Unit 1/92-94 Sturgeon St, Ormiston QLD 4160"
- City: the most accurate suburb/locality for the postal address
- Keep building or complex names

United Kingdom:
- County: include if applicable
- Postcode: standard UK format
- Example: "123 High Street, Manchester, Greater Manchester M1 1AA"

United States:
- State: two-letter abbreviation
- ZIP code: 5 digits or ZIP+4
- Example: "123 Main St, Boston, MA 02108"

United Arab Emirates:
- No postcodes (use 0000)
- Include the Emirate
- Example: "Villa 12, Street 7B, Al Wasl, Dubai 0000, UAE"

Hong Kong:
- No postcodes (use 0000)
- Include the District
- Example: "Flat 12A, Tower 1, Pacific Place, 88 Queensway, Central, Hong Kong 0000"

General rules:
1. Always include the regional division (state/county/emirate/district)
2. For countries without postcodes, use 0000
3. Keep local address format conventions
4. Use the full country name
5. Keep abbreviations consistent with local standards
6. Preserve street number ranges (e.g. 92-94)
7. Use the most accurate locality/suburb name for postal addressing

RESPOND ONLY WITH THE JSON OBJECT, NO OTHER TEXT."""

TEMPLATE_SYSTEM_PROMPT = (
    "You are an expert at writing professional, friendly email communications. "
    "Create a polite email template for address verification."
)

TEMPLATE_FALLBACK_TEXT = "Failed to generate email template"


class AddressValidationError(ValueError):
    """Raised before any remote call when the address is blank."""


class ResponseShapeError(ValueError):
    """The model answered with something that is not a VerifiedAddress object."""


class TemplateGenerationError(RuntimeError):
    pass


# =========================================================
# CLIENT
# =========================================================
def get_client() -> OpenAI:
    return OpenAI(api_key=config.require("OPENAI_API_KEY"))


# =========================================================
# RESPONSE PARSING
# =========================================================
def parse_verified_address(content: Optional[str]) -> VerifiedAddress:
    """
    Strictly parse a model response into a VerifiedAddress.

    Every field except ``zone`` must be present. Values must be strings;
    an integer postal code is accepted and stringified. Unknown keys are ignored.
    """
    if not content:
        raise ResponseShapeError("Empty response")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ResponseShapeError(f"Response is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise ResponseShapeError(f"Expected a JSON object, got {type(data).__name__}")

    values = {}
    for name in VERIFIED_ADDRESS_FIELDS:
        if name not in data:
            if name == "zone":
                values[name] = ""
                continue
            raise ResponseShapeError(f"Missing field: {name}")
        value = data[name]
        if value is None and name == "zone":
            value = ""
        if name == "postalCode" and isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            raise ResponseShapeError(f"Field {name} must be a string, got {type(value).__name__}")
        values[name] = value
    return VerifiedAddress(**values)


# =========================================================
# NORMALIZER
# =========================================================
def verify_address(address: str, client: Optional[OpenAI] = None) -> VerifiedAddress:
    """
    Verify and correct a single free-form address.

    Blank input raises AddressValidationError. API failures and malformed
    answers degrade to ``VerifiedAddress.fallback(address)``.
    """
    if not address or not address.strip():
        raise AddressValidationError("Address cannot be empty")

    if client is None:
        client = get_client()

    try:
        response = client.chat.completions.create(
            model=config.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": VERIFY_SYSTEM_PROMPT},
                {"role": "user", "content": f"Verify and correct this address: {address}"},
            ],
            response_format={"type": "json_object"},
            temperature=0.3,
            max_tokens=500,
        )
        content = response.choices[0].message.content
    except Exception as e:
        logger.error("Error verifying address %r: %s", address, e)
        return VerifiedAddress.fallback(address)

    try:
        return parse_verified_address(content)
    except ResponseShapeError as e:
        logger.warning("Unparsable normalizer response for %r: %s", address, e)
        return VerifiedAddress.fallback(address)


def generate_email_template(
    original_address: str,
    verified_address: str,
    client: Optional[OpenAI] = None,
) -> str:
    if client is None:
        client = get_client()
    try:
        response = client.chat.completions.create(
            model=config.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": TEMPLATE_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        "Generate a professional email template to notify a customer about an address update. "
                        f'Original address: "{original_address}", Verified address: "{verified_address}". '
                        "The email should be friendly, clear, and ask for their confirmation."
                    ),
                },
            ],
            temperature=0.7,
            max_tokens=500,
        )
    except Exception as e:
        logger.exception("Error generating email template: %s", e)
        raise TemplateGenerationError("Failed to generate email template") from e

    return response.choices[0].message.content or TEMPLATE_FALLBACK_TEXT
