import random
from collections.abc import Callable

DEFAULT_MAX_JITTER = 1.0
DEFAULT_MAX_DELAY = 30.0


def delay_for(
    attempt: int,
    base_delay: float,
    *,
    jitter: Callable[[], float] | None = None,
    max_jitter: float = DEFAULT_MAX_JITTER,
    cap: float = DEFAULT_MAX_DELAY,
) -> float:
    """Seconds to wait before retrying after the failed attempt `attempt` (0-based).

    Exponential term `base_delay * 2**attempt` plus uniform jitter in
    [0, max_jitter), clamped to `cap`. `jitter` returns a value in [0, 1);
    pass `lambda: 0.0` for deterministic delays.
    """
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    rand = jitter or random.random
    return min(cap, base_delay * (2**attempt) + rand() * max_jitter)
