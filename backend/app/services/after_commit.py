"""Side effects deferred until the business transaction has committed."""
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class AfterCommit:
    """Queue of sink calls collected inside a transaction.

    Call ``run()`` only after the commit succeeded; a rolled-back operation
    simply drops the queue. Failures are logged and never propagate.
    """

    def __init__(self):
        self._effects: list[tuple[Callable[..., Awaitable[Any]], tuple, dict]] = []

    def add(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> None:
        self._effects.append((fn, args, kwargs))

    def __len__(self) -> int:
        return len(self._effects)

    async def run(self) -> None:
        effects, self._effects = self._effects, []
        for fn, args, kwargs in effects:
            try:
                await fn(*args, **kwargs)
            except Exception as e:
                logger.warning("Post-commit side effect %s failed: %s", getattr(fn, "__name__", fn), e)
