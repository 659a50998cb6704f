import asyncio
import logging
from typing import Awaitable, Callable, Optional, Type, TypeVar, Tuple

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    backoff_seconds: float = 0.5,
    retry_on: Optional[Tuple[Type[BaseException], ...]] = (Exception,),
    label: str = "call",
) -> T:
    """Await fn() up to `attempts` times with exponential backoff between attempts. If retry_on is None, defaults to (Exception,). Re-raises the last error once the budget is spent.
    Why available: Used by the summarizer so each model call (map or reduce) survives transient provider and parse failures without failing the job."""
    if attempts <= 0:
        raise ValueError("attempts must be > 0")
    exc_types: Tuple[Type[BaseException], ...] = retry_on or (Exception,)

    last_err: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except exc_types as e:
            last_err = e
            logger.warning(
                "retry_attempt_failed",
                extra={"label": label, "attempt": attempt, "attempts": attempts, "error": str(e)},
            )
            if attempt >= attempts:
                raise
            sleep_s = backoff_seconds * (2 ** (attempt - 1))
            if sleep_s > 0:
                await asyncio.sleep(sleep_s)

    # Should be unreachable, but keeps type-checkers happy.
    assert last_err is not None
    raise last_err
