"""Name normalisation used to match uploaded rows against stored records."""

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def normalize_name(value: str | None) -> str:
    """Fold a display name to a lookup key.

    Drops control and format characters (zero-width spaces, BOMs, joiners
    pasted in from spreadsheets), collapses runs of whitespace and casefolds.
    """
    if not value:
        return ""
    text = unicodedata.normalize("NFKC", value)
    text = "".join(
        ch if not unicodedata.category(ch).startswith("C") else " "
        for ch in text
        if unicodedata.category(ch) != "Cf"
    )
    return _WHITESPACE.sub(" ", text).strip().casefold()
