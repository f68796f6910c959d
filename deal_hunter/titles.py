"""
Title parsing for Deal Hunter.

Auction titles look like "2003 BMW M5 (E39)" or "1991 Mazda MX-5 Miata".
"""

import re

from .models import VehicleTitle

TITLE_PATTERN = re.compile(r"^\s*(\d{4})\s+(\S+)\s+(.+?)\s*$", re.DOTALL)
TRIM_SUFFIX_PATTERN = re.compile(r"^(.*?)\s*\(([^()]*)\)$", re.DOTALL)


def parse_title(title) -> VehicleTitle:
    """
    Split a free-text title into year/make/model/trim.

    Never raises: a title that does not start with "<year> <make> <rest>"
    comes back as the model with everything else empty.
    """
    text = "" if title is None else str(title)

    match = TITLE_PATTERN.match(text)
    if not match:
        return VehicleTitle(year=0, make="", model=text, trim="")

    year, make, remainder = match.groups()

    suffix = TRIM_SUFFIX_PATTERN.match(remainder)
    if suffix:
        words = suffix.group(1).split()
        trim = suffix.group(2).strip()
    else:
        words = remainder.split()
        trim = " ".join(words[1:])

    return VehicleTitle(
        year=int(year),
        make=make,
        model=words[0] if words else "",
        trim=trim,
    )
