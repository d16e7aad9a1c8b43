"""
Request coordination for the plain listing and the search overlay.

Each source has at most one request in flight. Issuing a new request aborts
the previous one and bumps the source's generation, so a late response can
never overwrite a newer window.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from leaguemail.core.config import DirectoryConfig
from leaguemail.core.error_handling import log_error, normalize_error
from leaguemail.core.exceptions import DirectoryServiceError
from leaguemail.utils.reliability import retry_async

logger = structlog.get_logger(__name__)


class RequestSource(str, Enum):
    """Independent request streams."""

    PLAIN = "plain"
    SEARCH = "search"


@dataclass
class CancellationToken:
    """Identity of one issued request."""

    source: RequestSource
    generation: int
    cancelled: bool = False


class RequestCoordinator:
    """
    Run directory fetches as tasks and gate their results.

    ``on_commit`` receives the operation's result and ``on_error`` the
    normalized DirectoryServiceError; neither is called for a request that
    was aborted or superseded. Cancellation is never reported as an error.
    """

    def __init__(self, max_attempts: int = 3, initial_delay: float = 1.0, max_delay: float = 30.0):
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._generations: Dict[RequestSource, int] = {source: 0 for source in RequestSource}
        self._tokens: Dict[RequestSource, CancellationToken] = {}
        self._tasks: Dict[RequestSource, asyncio.Task] = {}

    @classmethod
    def from_config(cls, config: DirectoryConfig) -> "RequestCoordinator":
        return cls(
            max_attempts=config.max_retries,
            initial_delay=config.retry_initial_delay,
            max_delay=config.retry_max_delay,
        )

    def generation(self, source: RequestSource) -> int:
        return self._generations[source]

    def issue(
        self,
        source: RequestSource,
        operation: Callable[[], Awaitable[Any]],
        on_commit: Callable[[Any], None],
        on_error: Optional[Callable[[DirectoryServiceError], None]] = None,
    ) -> asyncio.Task:
        """
        Start a request for ``source``, superseding any request in flight.

        Args:
            source: Stream the request belongs to
            operation: Zero-argument coroutine factory, called once per attempt
            on_commit: Called with the result if the request is still current
            on_error: Called with the normalized error if still current

        Returns:
            The task running the request
        """
        self.abort(source)

        self._generations[source] += 1
        token = CancellationToken(source=source, generation=self._generations[source])
        self._tokens[source] = token

        task = asyncio.get_running_loop().create_task(
            self._execute(token, operation, on_commit, on_error)
        )
        self._tasks[source] = task

        logger.debug("Request issued", source=source.value, generation=token.generation)
        return task

    async def _execute(
        self,
        token: CancellationToken,
        operation: Callable[[], Awaitable[Any]],
        on_commit: Callable[[Any], None],
        on_error: Optional[Callable[[DirectoryServiceError], None]],
    ) -> Any:
        try:
            result = await retry_async(
                operation,
                max_attempts=self.max_attempts,
                initial_delay=self.initial_delay,
                max_delay=self.max_delay,
            )
        except asyncio.CancelledError:
            logger.debug(
                "Request cancelled", source=token.source.value, generation=token.generation
            )
            return None
        except Exception as e:
            error = normalize_error(
                e, {"source": token.source.value, "generation": token.generation}
            )
            if not self.is_current(token):
                logger.debug(
                    "Discarding failure of superseded request",
                    source=token.source.value,
                    generation=token.generation,
                    kind=error.kind.value,
                )
                return None

            log_error(error, operation=f"{token.source.value}_fetch")
            if on_error is not None:
                on_error(error)
            return None
        finally:
            if self._tasks.get(token.source) is asyncio.current_task():
                del self._tasks[token.source]

        if not self.is_current(token):
            logger.debug(
                "Discarding stale response",
                source=token.source.value,
                generation=token.generation,
                current_generation=self._generations[token.source],
            )
            return None

        on_commit(result)
        return result

    def is_current(self, token: CancellationToken) -> bool:
        return not token.cancelled and self._tokens.get(token.source) is token

    def in_flight(self, source: RequestSource) -> bool:
        task = self._tasks.get(source)
        return task is not None and not task.done()

    def pending_tasks(self) -> List[asyncio.Task]:
        return [task for task in self._tasks.values() if not task.done()]

    def abort(self, source: RequestSource) -> bool:
        """Abort the request in flight for ``source``; returns whether one was."""
        token = self._tokens.get(source)
        if token is not None:
            token.cancelled = True

        task = self._tasks.pop(source, None)
        if task is None or task.done():
            return False

        task.cancel()
        logger.debug(
            "Request aborted",
            source=source.value,
            generation=token.generation if token else None,
        )
        return True

    def abort_all(self) -> None:
        for source in RequestSource:
            self.abort(source)
