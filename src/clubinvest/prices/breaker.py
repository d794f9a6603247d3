"""Circuit breaker for price providers.

After ``failure_threshold`` consecutive failed quotes a provider is skipped
for ``open_duration`` seconds. Breaker state is plain data: the CLI keeps it
in the data directory, so a rate-limited provider stays paused across
separate invocations and is not hit again by every command.
"""

import json
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path

import aiofiles
from loguru import logger

from clubinvest.core.exceptions import StorageError
from clubinvest.core.types import PathLike


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""

    failure_threshold: int = 3
    """Consecutive failures required to open the circuit."""

    open_duration: float = 300.0
    """Seconds to keep the circuit open. Matches the five-minute price refresh."""


@dataclass
class ProviderState:
    consecutive_failures: int = 0
    successes: int = 0
    failures: int = 0
    open_until: float = 0.0


class CircuitBreaker:
    """Per-provider failure counter that pauses a provider once it keeps failing.

    The clock defaults to wall time so that a saved ``open_until`` still
    means something to the next process.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.time,
        states: dict[str, ProviderState] | None = None,
    ):
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._states: dict[str, ProviderState] = dict(states or {})

    def record(self, provider: str, *, success: bool) -> None:
        state = self._states.setdefault(provider, ProviderState())
        if success:
            state.successes += 1
            state.consecutive_failures = 0
            return

        state.failures += 1
        state.consecutive_failures += 1
        if state.consecutive_failures >= self.config.failure_threshold:
            state.open_until = self._clock() + self.config.open_duration
            logger.warning(
                f"Price provider {provider} failed {state.consecutive_failures} times in a row; "
                f"pausing it for {self.config.open_duration:.0f}s"
            )

    def is_available(self, provider: str) -> bool:
        state = self._states.get(provider)
        return state is None or self._clock() >= state.open_until

    def reset(self, provider: str) -> None:
        """Close the circuit for *provider* and forget its failure streak."""
        state = self._states.get(provider)
        if state is not None:
            state.open_until = 0.0
            state.consecutive_failures = 0

    def get_status(self) -> dict[str, dict]:
        return {
            provider: {
                "successes": state.successes,
                "failures": state.failures,
                "consecutive_failures": state.consecutive_failures,
                "circuit_open": not self.is_available(provider),
            }
            for provider, state in self._states.items()
        }

    def to_dict(self) -> dict[str, dict]:
        return {provider: asdict(state) for provider, state in self._states.items()}

    @classmethod
    def from_dict(
        cls,
        data: dict[str, dict],
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> "CircuitBreaker":
        return cls(config, clock, {provider: ProviderState(**state) for provider, state in data.items()})


async def load_breaker(
    path: PathLike,
    config: CircuitBreakerConfig | None = None,
    clock: Callable[[], float] = time.time,
) -> CircuitBreaker:
    """Breaker saved at *path*, or a fresh one when the file is missing or unreadable."""
    path = Path(path)
    if not path.exists():
        return CircuitBreaker(config, clock)
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            data = json.loads(await f.read())
        return CircuitBreaker.from_dict(data, config, clock)
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Ignoring unreadable breaker state {path}: {e}")
        return CircuitBreaker(config, clock)


async def save_breaker(breaker: CircuitBreaker, path: PathLike) -> None:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(breaker.to_dict(), indent=2, sort_keys=True))
    except OSError as e:
        raise StorageError(f"Cannot save breaker state to {path}: {e}") from e
