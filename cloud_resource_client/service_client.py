import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Collection, Dict, Mapping, Optional

import aiohttp
from loguru import logger
from pydantic import BaseModel

from cloud_resource_client.errors import NotFoundError, RemoteError, TransportError

GET_OK_CODES = (200,)
POST_OK_CODES = (200, 201, 202)
PUT_OK_CODES = (200, 201)
DELETE_OK_CODES = (200, 202, 204)


def build_request_body(options: BaseModel, root_key: Optional[str] = None) -> Dict[str, Any]:
    """Dump only the fields the caller explicitly set, zero values included"""
    body = options.model_dump(by_alias=True, exclude_unset=True)
    if root_key:
        return {root_key: body}
    return body


@dataclass(frozen=True)
class Response:
    status: int
    data: Any
    url: str


@dataclass(frozen=True)
class ServiceClient:
    """Issues requests against one service endpoint of one region.

    Instances are immutable so a single client can be shared by any number of
    concurrent waiters. Use with_version() to get a copy pointing at another
    API version instead of editing the base URL in place.
    """

    session: aiohttp.ClientSession
    endpoint: str
    resource_base: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    request_timeout: Optional[float] = None

    @property
    def logger(self):
        return logger

    def resource_base_url(self) -> str:
        base = self.resource_base or self.endpoint
        return base if base.endswith("/") else base + "/"

    def service_url(self, *parts: str) -> str:
        return self.resource_base_url() + "/".join(parts)

    def with_version(self, old: str, new: str) -> "ServiceClient":
        base = self.resource_base_url().replace(f"/{old}/", f"/{new}/", 1)
        return replace(self, resource_base=base)

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Any] = None,
        ok_codes: Collection[int],
    ) -> Response:
        """Sends a request; the response data is the decoded JSON body, or None when empty"""
        self.logger.debug(f"{method} {url}")
        kwargs: Dict[str, Any] = {"headers": dict(self.headers)}
        if json is not None:
            kwargs["json"] = json
        if self.request_timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=self.request_timeout)

        try:
            async with self.session.request(method, url, **kwargs) as response:
                if response.status not in ok_codes:
                    text = await response.text()
                    if response.status == 404:
                        self.logger.debug(f"Not found at {method} {url}")
                        raise NotFoundError(text, url)
                    self.logger.error(f"HTTP error {response.status} at {method} {url}: {text}")
                    raise RemoteError(response.status, text, url)

                payload = await response.read()
                if not payload:
                    return Response(response.status, None, url)
                try:
                    return Response(response.status, await response.json(content_type=None), url)
                except ValueError as e:
                    raise RemoteError(response.status, f"invalid JSON body: {e}", url) from e
        except aiohttp.ClientError as e:
            self.logger.error(f"Transport error at {method} {url}: {e}")
            raise TransportError(f"{method} {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            self.logger.error(f"Request timed out at {method} {url}")
            raise TransportError(f"{method} {url} timed out") from e

    async def get(self, url: str, *, ok_codes: Collection[int] = GET_OK_CODES) -> Response:
        return await self.request("GET", url, ok_codes=ok_codes)

    async def post(
        self, url: str, json: Optional[Any] = None, *, ok_codes: Collection[int] = POST_OK_CODES
    ) -> Response:
        return await self.request("POST", url, json=json, ok_codes=ok_codes)

    async def put(
        self, url: str, json: Optional[Any] = None, *, ok_codes: Collection[int] = PUT_OK_CODES
    ) -> Response:
        return await self.request("PUT", url, json=json, ok_codes=ok_codes)

    async def delete(self, url: str, *, ok_codes: Collection[int] = DELETE_OK_CODES) -> Response:
        return await self.request("DELETE", url, ok_codes=ok_codes)
