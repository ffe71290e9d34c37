import math
import random
from typing import Callable, List, Optional, Sequence, TypeVar

from adaptlearn.errors import NoEligiblePromptError

T = TypeVar('T')

RELEVANCE_WEIGHT = 0.4
CONFIDENCE_WEIGHT = 0.3
PRIORITY_WEIGHT = 0.3


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def overall_score(relevance: float, confidence: float, priority: float) -> int:
    """
    Combined recommendation strength.

    All inputs are on a 0-100 scale; the result is rounded half up so that
    e.g. 85/70/80 gives 79.
    """
    return round_half_up(
        relevance * RELEVANCE_WEIGHT
        + confidence * CONFIDENCE_WEIGHT
        + priority * PRIORITY_WEIGHT
    )


def prompt_overall_performance(average_rating: float, effectiveness_score: float, success_rate: float) -> int:
    return round_half_up(
        ((average_rating or 0) / 5) * 30
        + ((effectiveness_score or 0) / 100) * 40
        + ((success_rate or 0) / 100) * 30
    )


def weighted_choice(
    candidates: Sequence[T],
    weight: Callable[[T], float],
    rng: Optional[random.Random] = None
) -> T:
    """
    Pick a candidate with probability proportional to its weight.

    ``rng`` only needs a ``random()`` method returning a float in [0, 1), so
    tests can pass a deterministic source. With every weight at zero the
    first candidate is returned.
    """
    if not candidates:
        raise ValueError('weighted_choice() needs at least one candidate')

    weights = [max(0.0, weight(c) or 0.0) for c in candidates]
    total = sum(weights)
    if total <= 0:
        return candidates[0]

    draw = (rng or random).random() * total
    cumulative = 0.0
    for candidate, w in zip(candidates, weights):
        cumulative += w
        if cumulative > draw:
            return candidate

    # float rounding can leave the draw at the very top of the range
    return next(c for c, w in zip(reversed(candidates), reversed(weights)) if w > 0)


def rank_prompts(prompts: Sequence, limit: Optional[int] = 5) -> List:
    """Order by effectiveness then average rating, both descending (stable)."""
    ranked = sorted(
        prompts,
        key=lambda p: (p.effectiveness_score or 0, p.average_rating or 0),
        reverse=True
    )
    return ranked[:limit] if limit else ranked


def select_prompt(
    prompts: Sequence,
    enable_ab_testing: bool = True,
    rng: Optional[random.Random] = None,
    limit: Optional[int] = 5,
    description: str = 'the requested context'
):
    """
    Choose one prompt among candidates sharing personality and context type.

    Raises NoEligiblePromptError when there are no candidates.
    """
    ranked = rank_prompts(prompts, limit)
    if not ranked:
        raise NoEligiblePromptError(f'No prompts found for {description}')

    if enable_ab_testing and len(ranked) > 1:
        return weighted_choice(ranked, lambda p: p.test_weight, rng)

    return ranked[0]
