"""SM-2 ease/interval calculator for practice problems."""

import math
from typing import Tuple

MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
PASSING_QUALITY = 3


def compute_next_schedule(
    prev_ease_factor: float,
    prev_interval: int,
    attempt_number: int,
    quality_score: int,
) -> Tuple[float, int]:
    """
    SM-2 scheduling step. Pure: no I/O, no validation.

    Args:
        prev_ease_factor: Ease factor before this attempt
        prev_interval:    Interval in days before this attempt
        attempt_number:   1-based number of this attempt
        quality_score:    Recall quality 0-5 (0=blanked, 5=perfect).
                          Callers must range-check before calling.

    Returns:
        (new_ease_factor, new_interval_days)
    """
    # EF' = EF + (0.1 - (5-q) * (0.08 + (5-q) * 0.02))
    miss = 5 - quality_score
    ease = prev_ease_factor + (0.1 - miss * (0.08 + miss * 0.02))
    ease = max(ease, MIN_EASE_FACTOR)

    if quality_score < PASSING_QUALITY:
        # Poor recall: start over
        interval = 1
    elif attempt_number == 1:
        interval = 1
    elif attempt_number == 2:
        interval = 6
    else:
        # half-up, so 2.5 days -> 3
        interval = int(math.floor(prev_interval * ease + 0.5))

    return ease, interval
