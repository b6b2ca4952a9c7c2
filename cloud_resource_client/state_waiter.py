import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, FrozenSet, Optional, Protocol

from loguru import logger

from cloud_resource_client.errors import (
    CloudError,
    NotFoundError,
    UnexpectedStateError,
    WaitTimeoutError,
)
from cloud_resource_client.models import DELETED, PollOutcome, StateChange, StateChangeConfig
from cloud_resource_client.service_client import ServiceClient

INITIAL_BACKOFF = 0.1


class StateRefresher(Protocol):
    async def refresh(self) -> PollOutcome:
        """Fetches the current remote state; raises CloudError on failure"""
        ...


class DeleteRefresher(ABC):
    """Refresher that keeps issuing the delete call until the resource is gone.

    Servers may silently drop a delete request, so every poll that still sees
    the resource (outside a deleting state) sends the delete again. Once the
    resource has been observed absent no further delete is issued. A resource
    in one of failed_states is reported as-is, without another delete.
    """

    kind = "resource"
    deleting_states: FrozenSet[str] = frozenset()
    failed_states: FrozenSet[str] = frozenset()

    def __init__(self, client: ServiceClient, resource_id: str):
        self.client = client
        self.resource_id = resource_id
        self.deleted = False
        self.delete_attempts = 0
        self.logger = logger

    @abstractmethod
    async def fetch(self) -> PollOutcome:
        ...

    @abstractmethod
    async def issue_delete(self) -> Optional[CloudError]:
        ...

    def _gone(self) -> PollOutcome:
        self.deleted = True
        self.logger.debug(f"Successfully deleted {self.kind} {self.resource_id}")
        return PollOutcome(None, DELETED)

    async def refresh(self) -> PollOutcome:
        if self.deleted:
            return PollOutcome(None, DELETED)

        try:
            outcome = await self.fetch()
        except NotFoundError:
            return self._gone()

        if outcome.state in self.failed_states:
            self.logger.error(f"{self.kind} {self.resource_id} is {outcome.state}, not deleting")
            return outcome

        if outcome.state in self.deleting_states:
            self.logger.debug(f"{self.kind} {self.resource_id} is {outcome.state}")
            return outcome

        self.logger.debug(f"Attempting to delete {self.kind} {self.resource_id}")
        self.delete_attempts += 1
        err = await self.issue_delete()
        if isinstance(err, NotFoundError):
            return self._gone()
        if err is not None:
            raise err

        self.logger.debug(f"{self.kind} {self.resource_id} still {outcome.state}")
        return outcome


class StateWaiter:
    def __init__(
        self,
        refresher: StateRefresher,
        config: StateChangeConfig,
        on_state_change: Optional[Callable[[StateChange], Awaitable[Any]]] = None,
        description: str = "resource",
    ):
        self.refresher = refresher
        self.config = config
        self.description = description
        self.logger = logger
        self.on_state_change = on_state_change

    def _calculate_delay(self, attempt: int) -> float:
        """Calculates the wait before the next refresh, never below min_timeout"""
        if self.config.poll_interval is not None:
            delay = self.config.poll_interval
        else:
            delay = min(INITIAL_BACKOFF * (2**attempt), self.config.max_backoff)
        return max(delay, self.config.min_timeout)

    async def _handle_state_change(
        self, outcome: PollOutcome, last_state: Optional[str], elapsed_time: float
    ) -> None:
        """Invoke the state change callback if the state has changed"""
        if last_state == outcome.state:
            return
        self.logger.info(f"{self.description} state changed to {outcome.state}")
        if self.on_state_change is not None:
            await self.on_state_change(
                StateChange(
                    state=outcome.state,
                    previous_state=last_state,
                    value=outcome.value,
                    elapsed_time=elapsed_time,
                )
            )

    async def _wait_before_retry(self, attempt: int, remaining: float) -> None:
        delay = min(self._calculate_delay(attempt), remaining)
        self.logger.debug(
            f"{self.description} still pending, waiting {delay:.2f}s before next refresh"
        )
        await asyncio.sleep(delay)

    async def _refresh(self) -> PollOutcome:
        try:
            return await self.refresher.refresh()
        except NotFoundError:
            if DELETED not in self.config.target:
                raise
            self.logger.debug(f"{self.description} not found, treating as {DELETED}")
            return PollOutcome(None, DELETED)

    async def wait_for_state(self) -> Any:
        """Refresh until a target state is reached and return the last value.

        Raises the refresher's CloudError unchanged, UnexpectedStateError for
        a state outside the pending and target sets, and WaitTimeoutError when
        the deadline passes while the state is still pending.
        """
        loop = asyncio.get_running_loop()
        start = loop.time()
        deadline = start + self.config.timeout
        attempt = 0
        last_state = None

        if self.config.delay > 0:
            self.logger.debug(
                f"Waiting {self.config.delay:.2f}s before first refresh of {self.description}"
            )
            await asyncio.sleep(self.config.delay)

        while True:
            outcome = await self._refresh()
            await self._handle_state_change(outcome, last_state, loop.time() - start)
            last_state = outcome.state

            if outcome.state in self.config.target:
                self.logger.debug(f"{self.description} reached {outcome.state}")
                return outcome.value

            if outcome.state not in self.config.pending:
                raise UnexpectedStateError(
                    outcome.state, self.config.pending, self.config.target
                )

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise WaitTimeoutError(last_state, self.config.timeout, self.config.target)

            await self._wait_before_retry(attempt, remaining)
            attempt += 1


async def wait_for_state(
    refresher: StateRefresher,
    config: StateChangeConfig,
    on_state_change: Optional[Callable[[StateChange], Awaitable[Any]]] = None,
    description: str = "resource",
) -> Any:
    waiter = StateWaiter(refresher, config, on_state_change, description)
    return await waiter.wait_for_state()
