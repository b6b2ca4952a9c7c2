from typing import AsyncGenerator, Tuple

import aiohttp
import pytest
import pytest_asyncio
from fake_cloud_server import FakeCloudServer

from cloud_resource_client.config import ProviderConfig
from cloud_resource_client.service_client import ServiceClient


@pytest_asyncio.fixture
async def server(unused_tcp_port_factory) -> AsyncGenerator[Tuple[FakeCloudServer, int], None]:
    """Start and yield a FakeCloudServer instance on a random port."""
    port = unused_tcp_port_factory()
    server_instance = FakeCloudServer(completion_time=0.3, deletion_time=0.2)
    runner = await server_instance.start(port=port)
    try:
        yield server_instance, port
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[aiohttp.ClientSession, None]:
    async with aiohttp.ClientSession() as client_session:
        yield client_session


@pytest.fixture
def provider_config(server) -> ProviderConfig:
    _, port = server
    base_url = f"http://localhost:{port}"
    return ProviderConfig(
        region="test-region",
        project_id="project",
        token="secret-token",
        endpoints={"evs": base_url, "vpc": base_url},
        request_timeout=5.0,
    )


@pytest.fixture
def vpc_client(provider_config, session) -> ServiceClient:
    return provider_config.vpc_v2_client(session)


@pytest.fixture
def evs_client(provider_config, session) -> ServiceClient:
    return provider_config.block_storage_v2_client(session)
