import logging
import math
from collections import Counter

from .models import CatalogItem, ItemVector, RecommendationFilter
from .text_builder import AuthorLookup, build_text
from .tokenizer import tokenize

logger = logging.getLogger(__name__)


def term_frequencies(tokens: list[str]) -> dict[str, float]:
    """Relative frequency of each term (count / total tokens)."""
    if not tokens:
        return {}
    total = len(tokens)
    return {tok: count / total for tok, count in Counter(tokens).items()}


def document_frequencies(corpus: list[dict[str, float]]) -> dict[str, int]:
    """Number of documents whose frequency map contains each term."""
    df: dict[str, int] = {}
    for tf in corpus:
        for tok in tf:
            df[tok] = df.get(tok, 0) + 1
    return df


def inverse_document_frequency(total_docs: int, df: int) -> float:
    # Zero or negative for terms found in nearly every document
    return math.log(total_docs / (df + 1))


def build_vectors(
    items: list[CatalogItem],
    rec_filter: RecommendationFilter,
    author_lookup: AuthorLookup,
) -> list[ItemVector]:
    """
    Compute a sparse TF-IDF vector for every catalog item.

    Every item gets a vector (possibly empty) in input order. The corpus size
    used for IDF counts every item, including those without any terms.
    """
    if not items:
        return []

    corpus = []
    for item in items:
        text = build_text(item, rec_filter, author_lookup)
        corpus.append(term_frequencies(tokenize(text)))

    df_counts = document_frequencies(corpus)
    total_docs = len(items)
    idf = {tok: inverse_document_frequency(total_docs, df) for tok, df in df_counts.items()}

    vectors = [
        ItemVector(item_id=item.item_id, weights={tok: freq * idf[tok] for tok, freq in tf.items()})
        for item, tf in zip(items, corpus)
    ]
    logger.debug(f"Built {len(vectors)} item vectors over a vocabulary of {len(idf)} terms")
    return vectors
