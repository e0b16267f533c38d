from dataclasses import dataclass, asdict, fields
from typing import Dict

# ShipStation export column names
NAME_COL = "Ship To - Name"
COMPANY_COL = "Ship To - Company"
ADDRESS1_COL = "Ship To - Address 1"
ADDRESS2_COL = "Ship To - Address 2"
ADDRESS3_COL = "Ship To - Address 3"
CITY_COL = "Ship To - City"
STATE_COL = "Ship To - State"
ZONE_COL = "Ship To - Zone"
POSTAL_CODE_COL = "Ship To - Postal Code"
COUNTRY_COL = "Ship To - Country"
ORDER_NUMBER_COL = "Order - Number"
EMAIL_COL = "Customer Email"

SHIPPING_COLUMNS = [
    NAME_COL,
    COMPANY_COL,
    ADDRESS1_COL,
    ADDRESS2_COL,
    ADDRESS3_COL,
    CITY_COL,
    STATE_COL,
    ZONE_COL,
    POSTAL_CODE_COL,
    COUNTRY_COL,
    ORDER_NUMBER_COL,
    EMAIL_COL,
]

# Order matters: this is the join order of the address string
ADDRESS_COLUMNS = [
    ADDRESS1_COL,
    ADDRESS2_COL,
    ADDRESS3_COL,
    CITY_COL,
    STATE_COL,
    POSTAL_CODE_COL,
    COUNTRY_COL,
]
ADDRESS_SEPARATOR = ", "

ORIGINAL_ADDRESS_COL = "Original Address"
VERIFIED_ADDRESS_COL = "Verified Address"
VERIFIED_PREFIX = "verified "

VERIFIED_COLUMNS = [
    VERIFIED_PREFIX + c
    for c in [
        NAME_COL,
        COMPANY_COL,
        ADDRESS1_COL,
        ADDRESS2_COL,
        ADDRESS3_COL,
        CITY_COL,
        STATE_COL,
        ZONE_COL,
        POSTAL_CODE_COL,
        COUNTRY_COL,
    ]
]

OUTPUT_COLUMNS = SHIPPING_COLUMNS + [ORIGINAL_ADDRESS_COL, VERIFIED_ADDRESS_COL] + VERIFIED_COLUMNS

NO_POSTCODE = "0000"


@dataclass(frozen=True)
class VerifiedAddress:
    address1: str = ""
    address2: str = ""
    address3: str = ""
    city: str = ""
    state: str = ""
    zone: str = ""
    postalCode: str = ""
    country: str = ""
    fullAddress: str = ""

    @classmethod
    def fallback(cls, address: str) -> "VerifiedAddress":
        """Degraded record used when the normalizer fails or answers garbage."""
        return cls(address1=address, fullAddress=address)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


VERIFIED_ADDRESS_FIELDS = [f.name for f in fields(VerifiedAddress)]

# Maps VerifiedAddress attributes onto the prefixed output columns
VERIFIED_FIELD_COLUMNS = {
    "address1": VERIFIED_PREFIX + ADDRESS1_COL,
    "address2": VERIFIED_PREFIX + ADDRESS2_COL,
    "address3": VERIFIED_PREFIX + ADDRESS3_COL,
    "city": VERIFIED_PREFIX + CITY_COL,
    "state": VERIFIED_PREFIX + STATE_COL,
    "zone": VERIFIED_PREFIX + ZONE_COL,
    "postalCode": VERIFIED_PREFIX + POSTAL_CODE_COL,
    "country": VERIFIED_PREFIX + COUNTRY_COL,
}
