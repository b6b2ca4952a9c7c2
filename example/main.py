import asyncio

import aiohttp
from fake_cloud_server import FakeCloudServer

from cloud_resource_client.config import ProviderConfig
from cloud_resource_client.errors import ResourceError
from cloud_resource_client.resource import ResourceData
from cloud_resource_client.resource_nat_gateway import NatGatewayResource
from cloud_resource_client.resource_volume import VolumeResource


async def main():
    PORT = 8000
    server = FakeCloudServer(completion_time=5.0, deletion_time=2.0, drop_deletes=1)
    runner = await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    base_url = f"http://localhost:{PORT}"
    config = ProviderConfig(
        region="local",
        project_id="project",
        token="example-token",
        endpoints={"evs": base_url, "vpc": base_url},
    )

    async with aiohttp.ClientSession() as session:
        gateways = NatGatewayResource(config, session, delay=1.0, min_timeout=1.0)
        disks = VolumeResource(config, session, delay=1.0, min_timeout=1.0)

        gateway = ResourceData(
            {"name": "nat-1", "spec": "1", "router_id": "router-1", "internal_network_id": "net-1"}
        )
        volume = ResourceData(
            {"availability_zone": "az-1", "volume_type": "SSD", "name": "data", "size": 10}
        )

        try:
            await asyncio.gather(gateways.create(gateway), disks.create(volume))
            print(f"NAT gateway {gateway.id} is {gateway.get('status')}")
            print(f"Volume {volume.id} is {volume.get('status')}")

            await asyncio.gather(gateways.delete(gateway), disks.delete(volume))
            print("NAT gateway and volume deleted")
        except ResourceError as e:
            print(f"Error occurred: {e}")

    await runner.cleanup()


if __name__ == "__main__":
    asyncio.run(main())
