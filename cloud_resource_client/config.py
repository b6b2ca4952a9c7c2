import os
from typing import Dict, Mapping, Optional

import aiohttp
from pydantic import BaseModel, Field

from cloud_resource_client.service_client import ServiceClient

ENV_PREFIX = "CLOUD_"


class ProviderConfig(BaseModel):
    """Credentials and endpoint layout shared by every client of one provider.

    Passed explicitly to each resource; endpoint overrides are keyed by
    service name (``evs``, ``vpc``) and replace the generated URL.
    """

    region: str
    project_id: str
    token: str = ""
    cloud: str = "myhuaweicloud.com"
    endpoints: Dict[str, str] = Field(default_factory=dict)
    request_timeout: Optional[float] = Field(default=60.0, gt=0)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ProviderConfig":
        env = os.environ if environ is None else environ
        endpoints = {
            key[len(ENV_PREFIX + "ENDPOINT_"):].lower(): value
            for key, value in env.items()
            if key.startswith(ENV_PREFIX + "ENDPOINT_")
        }
        return cls(
            region=env.get(ENV_PREFIX + "REGION", ""),
            project_id=env.get(ENV_PREFIX + "PROJECT_ID", ""),
            token=env.get(ENV_PREFIX + "TOKEN", ""),
            cloud=env.get(ENV_PREFIX + "DOMAIN", "myhuaweicloud.com"),
            endpoints=endpoints,
        )

    def endpoint_for(
        self,
        service: str,
        version: str,
        region: Optional[str] = None,
        project_scoped: bool = True,
    ) -> str:
        base = self.endpoints.get(service)
        if base is None:
            base = f"https://{service}.{region or self.region}.{self.cloud}"
        url = f"{base.rstrip('/')}/{version}/"
        if project_scoped:
            url += f"{self.project_id}/"
        return url

    def service_client(
        self,
        session: aiohttp.ClientSession,
        service: str,
        version: str,
        region: Optional[str] = None,
        project_scoped: bool = True,
    ) -> ServiceClient:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["X-Auth-Token"] = self.token
        return ServiceClient(
            session=session,
            endpoint=self.endpoint_for(service, version, region, project_scoped),
            headers=headers,
            request_timeout=self.request_timeout,
        )

    def block_storage_v2_client(
        self, session: aiohttp.ClientSession, region: Optional[str] = None
    ) -> ServiceClient:
        return self.service_client(session, "evs", "v2", region)

    def vpc_v2_client(
        self, session: aiohttp.ClientSession, region: Optional[str] = None
    ) -> ServiceClient:
        return self.service_client(session, "vpc", "v2.0", region, project_scoped=False)
