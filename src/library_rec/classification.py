"""
Helpers for Dewey-style classification numbers and cutter numbers.

Classification codes look like ``823.914``: an integer class of up to three
digits, optionally followed by a decimal fraction. Topical comparisons only
look at the hundreds class the integer part falls in (000-099, 100-199, ...).
"""
import logging
import re
from typing import Iterable

logger = logging.getLogger(__name__)

_CLASSIFICATION_PATTERN = re.compile(r'^\d{1,3}(\.\d{1,10})?$')
_CUTTER_PATTERN = re.compile(r'^[^\W\d_]{1,2}\d{1,4}(\.\d+)?[^\W\d_]?$', re.IGNORECASE)


def is_valid_classification(code: str | None) -> bool:
    if not code or not code.strip():
        return False
    return bool(_CLASSIFICATION_PATTERN.match(code.strip()))


def is_valid_cutter(code: str | None) -> bool:
    if not code or not code.strip():
        return False
    return bool(_CUTTER_PATTERN.match(code.strip()))


def integer_part(code: str | None) -> str:
    """Return the text before the first decimal point ('' for missing codes)."""
    if not code:
        return ''
    return code.split('.', 1)[0]


def parse_classification(code: str | None) -> int | None:
    """Parse the integer class of a code, or None when it is blank or not numeric."""
    head = integer_part(code).strip()
    if not head:
        return None
    try:
        return int(head)
    except ValueError:
        logger.debug(f"Ignoring non-numeric classification code '{code}'")
        return None


def classification_class(number: int) -> int:
    """Lower bound of the hundreds class for a number in 0-999 (0 otherwise)."""
    if number < 0 or number > 999:
        return 0
    return (number // 100) * 100


def reader_classes(codes: Iterable[str | None]) -> set[int]:
    """Hundreds classes touched by a reader's interacted items."""
    classes = set()
    for code in codes:
        number = parse_classification(code)
        if number is not None:
            classes.add(classification_class(number))
    return classes


def is_within_range(code: str | None, classes: set[int]) -> bool:
    """
    True when ``code`` falls in one of the hundreds ``classes``
    (as returned by ``reader_classes``).

    An item without a parseable code is never within range.
    """
    number = parse_classification(code)
    if number is None:
        return False
    return classification_class(number) in classes
