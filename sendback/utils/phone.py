# sendback/utils/phone.py
from typing import Optional

import phonenumbers
from fastapi import HTTPException


def to_e164(raw: Optional[str], region: str = "US") -> Optional[str]:
    """
    Normalize a phone number to E.164 (+1XXXXXXXXXX for US/CA).
    Returns None when the input cannot be a phone number.

    Only the length/shape is checked (is_possible_number): test and
    fictional 555 numbers are accepted.
    """
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        pn = phonenumbers.parse(raw, region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_possible_number(pn):
        return None
    return phonenumbers.format_number(pn, phonenumbers.PhoneNumberFormat.E164)


def normalize_us_phone(raw: str) -> str:
    """
    Same as to_e164 but raises 422 so the API returns a clean error.
    """
    e164 = to_e164(raw)
    if not e164:
        raise HTTPException(status_code=422, detail="Invalid phone number. Use format like +18145551234.")
    return e164
