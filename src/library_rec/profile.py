import logging
from collections import defaultdict

from .config import (
    WEIGHT_BORROWED,
    WEIGHT_RESERVED,
    WEIGHT_FAVORITE,
    RATING_OFFSET,
    CONSUMPTION_PENALTY,
)
from .models import InteractionRecord, ItemVector

logger = logging.getLogger(__name__)


def activity_weight(record: InteractionRecord) -> float:
    """
    Compute preference weight for a single interaction.

    Weighting strategy:
    - Rating 3/4/5:        +1/+2/+3 (x0.8 if borrowed before but no longer on loan)
    - Unrated, borrowed:   +1.5
    - Unrated, reserved:   +1.0 (adds to borrowed)
    - Favorite:            +2.0 on top of everything else
    """
    weight = 0.0

    if record.rating > RATING_OFFSET:
        rating_weight = float(record.rating - RATING_OFFSET)
        if not record.borrowed and record.borrow_count > 0:
            rating_weight *= CONSUMPTION_PENALTY
        weight += rating_weight
    else:
        if record.borrowed and record.borrow_count > 0:
            weight += WEIGHT_BORROWED
        if record.reserved and record.reserve_count > 0:
            weight += WEIGHT_RESERVED

    if record.favorite:
        weight += WEIGHT_FAVORITE

    return weight


def build_user_profile(
    item_vectors: list[ItemVector],
    interactions: list[InteractionRecord],
) -> dict[str, float]:
    """
    Aggregate the vectors of interacted items into one weighted-average vector.

    Interactions whose item has no vector are skipped. Returns an empty dict
    when no interaction carries any weight.
    """
    vectors_by_id = {vec.item_id: vec for vec in item_vectors}
    profile: dict[str, float] = defaultdict(float)
    total_weight = 0.0

    for record in interactions:
        vector = vectors_by_id.get(record.item_id)
        if vector is None:
            continue

        weight = activity_weight(record)
        if weight == 0:
            continue
        total_weight += weight

        for term, value in vector.weights.items():
            profile[term] += value * weight

    if total_weight <= 0:
        return {}

    logger.debug(f"User profile built from total activity weight {total_weight:.2f} over {len(profile)} terms")
    return {term: value / total_weight for term, value in profile.items()}
