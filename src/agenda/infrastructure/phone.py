"""Contact phone normalization to E.164 with phonenumbers."""

from collections.abc import Callable
from functools import partial

import phonenumbers


def normalize_phone(raw: str | None, default_region: str | None = None) -> str | None:
    """E.164 form of a contact's phone, or None when it is not a valid number.

    Numbers typed without a leading + are read in default_region (ISO 3166
    alpha-2, any case, e.g. "br"). Without a region they cannot be resolved.
    """
    text = (raw or "").strip()
    if not text:
        return None
    region = (default_region or "").strip().upper() or None
    if region is None and not text.startswith("+"):
        return None
    try:
        number = phonenumbers.parse(text, region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(number):
        return None
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


def phone_normalizer(default_region: str | None) -> Callable[[str], str | None]:
    """normalize_phone bound to a region, in the shape ContactService expects."""
    return partial(normalize_phone, default_region=default_region)
