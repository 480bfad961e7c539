from __future__ import annotations

from dataclasses import dataclass

from ..core.constants import DEFAULT_BACKOFF_BASE_SECONDS, DEFAULT_BACKOFF_CEILING_SECONDS


@dataclass(frozen=True)
class BackoffPolicy:
    """Capped exponential backoff: base, 2*base, 4*base, ... up to ceiling."""

    base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS
    ceiling_seconds: float = DEFAULT_BACKOFF_CEILING_SECONDS

    def delay(self, failures: int) -> float:
        if failures <= 0:
            return 0.0
        # Cap the exponent so huge failure counts do not overflow the float.
        exponent = min(failures - 1, 32)
        return min(self.base_seconds * (2 ** exponent), self.ceiling_seconds)
