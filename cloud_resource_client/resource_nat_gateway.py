from pydantic import ValidationError

from cloud_resource_client import nat_gateways
from cloud_resource_client.errors import CloudError, ResourceError
from cloud_resource_client.models import DELETED
from cloud_resource_client.nat_gateways import (
    NatGatewayCreateOptions,
    NatGatewayDeleteRefresher,
    NatGatewayStateRefresher,
    NatGatewayStatus,
    NatGatewayUpdateOptions,
)
from cloud_resource_client.resource import (
    TIMEOUT_CREATE,
    TIMEOUT_DELETE,
    BaseResource,
    ResourceData,
    check_deleted,
)
from cloud_resource_client.service_client import ServiceClient

CREATE_FIELDS = ("name", "description", "spec", "tenant_id", "router_id", "internal_network_id")
UPDATE_FIELDS = ("name", "description", "spec")

CREATE_PENDING = {NatGatewayStatus.pending_create.value}
CREATE_TARGET = {NatGatewayStatus.active.value}
DELETE_PENDING = {
    NatGatewayStatus.active.value,
    NatGatewayStatus.inactive.value,
    NatGatewayStatus.pending_create.value,
    NatGatewayStatus.pending_update.value,
    NatGatewayStatus.pending_delete.value,
}


class NatGatewayResource(BaseResource):
    what = "NAT gateway"

    def client(self, data: ResourceData) -> ServiceClient:
        return self.config.vpc_v2_client(self.session, self.region(data))

    async def create(self, data: ResourceData) -> None:
        client = self.client(data)
        fields = {key: data.get(key) for key in CREATE_FIELDS if data.get(key) is not None}
        try:
            opts = NatGatewayCreateOptions(**fields)
        except ValidationError as e:
            raise ResourceError(f"Invalid {self.what} options: {e}") from e

        try:
            gateway = (await nat_gateways.create(client, opts)).extract()
        except CloudError as e:
            raise ResourceError(f"Error creating {self.what}: {e}") from e

        self.logger.debug(f"Waiting for {self.what} ({gateway.id}) to become available")
        await self.wait(
            NatGatewayStateRefresher(client, gateway.id),
            CREATE_PENDING,
            CREATE_TARGET,
            data.timeout(TIMEOUT_CREATE),
            "creating",
        )

        data.set_id(gateway.id)
        await self.read(data)

    async def read(self, data: ResourceData) -> None:
        client = self.client(data)
        try:
            gateway = (await nat_gateways.get(client, data.id)).extract()
        except CloudError as e:
            check_deleted(data, e, self.what)
            return

        for key in CREATE_FIELDS:
            data.set(key, getattr(gateway, key))
        data.set("status", gateway.status)
        data.set("region", self.region(data))

    async def update(self, data: ResourceData) -> None:
        client = self.client(data)
        changes = {key: data.get(key) for key in UPDATE_FIELDS if data.has_change(key)}
        if changes:
            try:
                opts = NatGatewayUpdateOptions(**changes)
            except ValidationError as e:
                raise ResourceError(f"Invalid {self.what} options: {e}") from e

            self.logger.debug(f"Update {self.what} {data.id} with {changes}")
            err = (await nat_gateways.update(client, data.id, opts)).extract_err()
            if err is not None:
                raise ResourceError(f"Error updating {self.what}: {err}") from err

        await self.read(data)

    async def delete(self, data: ResourceData) -> None:
        client = self.client(data)
        await self.wait(
            NatGatewayDeleteRefresher(client, data.id),
            DELETE_PENDING,
            {DELETED},
            data.timeout(TIMEOUT_DELETE),
            "deleting",
        )
        data.set_id("")
