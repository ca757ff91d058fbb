import logging
import math
from typing import Iterable

from .classification import is_within_range, reader_classes
from .config import CLASSIFICATION_MISMATCH_PENALTY
from .models import ItemVector, ScoredItem

logger = logging.getLogger(__name__)


def cosine_similarity(vec_a: dict[str, float], vec_b: dict[str, float]) -> float:
    """Cosine on sparse dicts; 0.0 when either vector has zero norm."""
    dot = 0.0
    norm_a = 0.0
    for term, weight in vec_a.items():
        dot += weight * vec_b.get(term, 0.0)
        norm_a += weight * weight
    norm_b = sum(v * v for v in vec_b.values())

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def score_and_rank(
    item_vectors: list[ItemVector],
    user_profile: dict[str, float],
    interacted_item_ids: Iterable[int],
    reader_codes: Iterable[str | None] = (),
    item_codes: dict[int, str | None] | None = None,
) -> list[ScoredItem]:
    """
    Score every item against the user profile and rank the novel ones.

    Items with non-positive similarity are dropped. When the reader has at
    least one classification code, items outside the reader's classification
    classes have their score halved. Already-interacted items are excluded.
    Ties keep input order (the sort is stable).
    """
    interacted = set(interacted_item_ids)
    classes = reader_classes(reader_codes)
    item_codes = item_codes or {}

    scored: list[ScoredItem] = []
    for vector in item_vectors:
        similarity = cosine_similarity(vector.weights, user_profile)
        if similarity <= 0:
            continue

        if classes and not is_within_range(item_codes.get(vector.item_id), classes):
            similarity *= CLASSIFICATION_MISMATCH_PENALTY

        if vector.item_id in interacted:
            continue
        scored.append(ScoredItem(item_id=vector.item_id, score=similarity))

    scored.sort(key=lambda s: -s.score)
    return scored
