import re

_NON_DIGITS = re.compile(r"[^\d+]")
_LOCAL_NINE = re.compile(r"^\d{9}$")
_E164_IL = re.compile(r"^\+972\d{8,9}$")
_MOBILE_IL = re.compile(r"^\+9725\d{8}$")


class PhoneFormatError(ValueError):
    pass


def normalize_phone(raw: str) -> str:
    """
    Normalize an Israeli phone number to E.164.
    Accepts 0541234567, +972541234567, 972541234567, 541234567 and
    the same with spaces or dashes. Returns +972541234567.
    """
    if not isinstance(raw, str):
        raise PhoneFormatError("Invalid phone number format")

    cleaned = _NON_DIGITS.sub("", raw.strip())

    if cleaned.startswith("+972"):
        normalized = cleaned
    elif cleaned.startswith("972"):
        normalized = "+" + cleaned
    elif cleaned.startswith("0"):
        normalized = "+972" + cleaned[1:]
    elif _LOCAL_NINE.match(cleaned):
        normalized = "+972" + cleaned
    else:
        raise PhoneFormatError("Invalid phone number format")

    if not _E164_IL.match(normalized):
        raise PhoneFormatError("Invalid phone number format")
    return normalized


def to_local_phone(phone: str) -> str:
    """E.164 (or anything normalize_phone accepts) -> 05XXXXXXXX."""
    return "0" + normalize_phone(phone)[4:]


def is_valid_mobile(phone: str) -> bool:
    try:
        return bool(_MOBILE_IL.match(normalize_phone(phone)))
    except PhoneFormatError:
        return False


def mask_phone(phone: str) -> str:
    """For logs: 05***4567."""
    try:
        local = to_local_phone(phone)
    except PhoneFormatError:
        return "***masked***"
    return f"{local[:2]}***{local[-4:]}"
