"""Phone number canonicalization used as the matching key."""
import re

TRUNK_PREFIX = "8"
COUNTRY_CODE = "7"
NATIONAL_LENGTH = 11

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw) -> str:
    """
    Reduce a phone string to digits in the 7XXXXXXXXXX form.

    Returns an empty string when nothing usable is left; callers must treat
    that as "cannot match".
    """
    if raw is None:
        return ""
    digits = _NON_DIGITS.sub("", str(raw))
    if len(digits) == NATIONAL_LENGTH and digits.startswith(TRUNK_PREFIX):
        digits = COUNTRY_CODE + digits[1:]
    return digits
