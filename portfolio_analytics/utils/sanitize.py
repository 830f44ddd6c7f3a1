"""
Output sanitization helpers
"""

import logging
import re

logger = logging.getLogger(__name__)

# Leading characters spreadsheets treat as the start of a formula
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def sanitize_csv_field(value) -> str:
    """
    Make a value safe to place in an exported CSV cell.

    Strings starting with a formula character are prefixed with a single
    quote and embedded line breaks are collapsed. Numbers are left as they
    are, so negative values stay numeric.

    Example:
        >>> sanitize_csv_field("=HYPERLINK(...)")
        "'=HYPERLINK(...)"
        >>> sanitize_csv_field(-12.5)
        '-12.5'
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        return str(value)

    if value.startswith(FORMULA_PREFIXES):
        logger.debug("Prefixed CSV value that looked like a formula")
        value = "'" + value

    return re.sub(r"[\r\n]+", " ", value)
