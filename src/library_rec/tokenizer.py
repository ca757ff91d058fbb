import re
import unicodedata

from .stopwords import STOP_WORDS

# Whitespace plus the punctuation that separates words in catalog fields
_DELIMITERS = re.compile(r'[ \r\n,.;:\-_!?()\[\]{}"]+')

# Letters that carry a stroke rather than a combining mark
_STROKE_LETTERS = str.maketrans({'đ': 'd', 'Đ': 'D'})


def strip_diacritics(token: str) -> str:
    """Remove accents so that 'bí' and 'bi' collapse to the same term."""
    decomposed = unicodedata.normalize('NFD', token.translate(_STROKE_LETTERS))
    stripped = ''.join(ch for ch in decomposed if unicodedata.category(ch) != 'Mn')
    return unicodedata.normalize('NFC', stripped)


def tokenize(text: str | None) -> list[str]:
    """
    Split free text into normalized terms.

    Lower-cases and composes (NFC), splits on the fixed delimiter set, drops stop words
    (matched before accent stripping) and strips diacritics.
    """
    if not text or not text.strip():
        return []

    # Stop words are stored composed; decomposed input must match them too
    text = unicodedata.normalize('NFC', text.lower())
    tokens = [tok for tok in _DELIMITERS.split(text) if tok]
    return [strip_diacritics(tok) for tok in tokens if tok not in STOP_WORDS]
