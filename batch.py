"""Sequential batch executor with fixed inter-item pacing."""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence, TypeVar

from models import BatchRun

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def run_batch(
    eligible: Sequence[T],
    max_count: int,
    inter_item_delay: float,
    step: Callable[[T], object],
    *,
    pace_every: int = 1,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "batch",
    describe: Callable[[T], str] = str,
) -> BatchRun:
    """Run ``step`` over at most ``max_count`` eligible items, one at a time.

    ``processed`` counts every attempted item; ``errors`` counts items whose
    step raised. The delay follows every ``pace_every``-th item, except the
    last one attempted. The run is not resumable: the next invocation
    recomputes eligibility, so items never reached are picked up then.
    """
    run = BatchRun(label=label, total=len(eligible))
    targets = list(eligible[: max(0, max_count)])
    pace_every = max(1, pace_every)

    LOGGER.info("%s: %s eligible, processing %s (max_count=%s)", label, run.total, len(targets), max_count)

    for position, item in enumerate(targets, start=1):
        try:
            step(item)
        except Exception as exc:
            run.errors += 1
            run.failed_items.append(describe(item))
            LOGGER.exception("%s: item %s/%s failed (%s): %s", label, position, len(targets), describe(item), exc)
        run.processed += 1

        if inter_item_delay > 0 and position < len(targets) and position % pace_every == 0:
            LOGGER.debug("%s: %s/%s done, pausing %.1fs", label, position, len(targets), inter_item_delay)
            sleep(inter_item_delay)

    LOGGER.info(run.summary())
    return run
