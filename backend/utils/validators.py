import re

NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str) -> str:
    """Reduce a phone number to its 10 local digits."""
    digits = NON_DIGITS.sub("", phone or "")

    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits")

    return digits
