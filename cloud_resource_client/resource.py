from typing import Any, Dict, Iterable, Mapping, Optional

import aiohttp
from loguru import logger

from cloud_resource_client.config import ProviderConfig
from cloud_resource_client.errors import CloudError, NotFoundError, ResourceError
from cloud_resource_client.models import StateChangeConfig
from cloud_resource_client.state_waiter import StateRefresher, wait_for_state

TIMEOUT_CREATE = "create"
TIMEOUT_UPDATE = "update"
TIMEOUT_DELETE = "delete"

DEFAULT_TIMEOUTS = {
    TIMEOUT_CREATE: 600.0,
    TIMEOUT_UPDATE: 600.0,
    TIMEOUT_DELETE: 600.0,
}


class ResourceData:
    def __init__(
        self,
        config: Mapping[str, Any],
        state: Optional[Mapping[str, Any]] = None,
        id: str = "",
        timeouts: Optional[Mapping[str, float]] = None,
    ):
        self.id = id
        self._config = dict(config)
        self._state = dict(state or {})
        self._timeouts = {**DEFAULT_TIMEOUTS, **(timeouts or {})}

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._config:
            return self._config[key]
        return self._state.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._state[key] = value

    def has_change(self, key: str) -> bool:
        return key in self._config and self._config[key] != self._state.get(key)

    def set_id(self, resource_id: str) -> None:
        self.id = resource_id

    def timeout(self, operation: str) -> float:
        return self._timeouts[operation]

    @property
    def state(self) -> Dict[str, Any]:
        return dict(self._state)


def check_deleted(data: ResourceData, err: CloudError, what: str) -> None:
    """Clears the id when the resource is gone; any other error is re-raised"""
    if isinstance(err, NotFoundError):
        logger.info(f"{what} {data.id} not found, removing from state")
        data.set_id("")
        return
    raise ResourceError(f"Error retrieving {what}: {err}") from err


class BaseResource:
    """Holds the provider configuration and waiter tuning shared by resources"""

    what = "resource"

    def __init__(
        self,
        config: ProviderConfig,
        session: aiohttp.ClientSession,
        delay: float = 5.0,
        min_timeout: float = 3.0,
        poll_interval: Optional[float] = None,
    ):
        self.config = config
        self.session = session
        self.delay = delay
        self.min_timeout = min_timeout
        self.poll_interval = poll_interval
        self.logger = logger

    def region(self, data: ResourceData) -> str:
        return data.get("region") or self.config.region

    async def wait(
        self,
        refresher: StateRefresher,
        pending: Iterable[str],
        target: Iterable[str],
        timeout: float,
        action: str,
    ) -> Any:
        state_config = StateChangeConfig(
            pending=frozenset(pending),
            target=frozenset(target),
            poll_interval=self.poll_interval,
            delay=self.delay,
            min_timeout=self.min_timeout,
            timeout=timeout,
        )
        try:
            return await wait_for_state(refresher, state_config, description=self.what)
        except CloudError as e:
            raise ResourceError(f"Error {action} {self.what}: {e}") from e
