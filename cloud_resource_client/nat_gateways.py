from enum import Enum
from typing import Annotated, Optional

from loguru import logger
from pydantic import AfterValidator, BaseModel

from cloud_resource_client.errors import CloudError
from cloud_resource_client.models import NullableStr, PollOutcome
from cloud_resource_client.result import Result
from cloud_resource_client.service_client import ServiceClient, build_request_body
from cloud_resource_client.state_waiter import DeleteRefresher

RESOURCE_PATH = "nat_gateways"
SPECS = ("1", "2", "3", "4")


class NatGatewayStatus(str, Enum):
    active = "ACTIVE"
    pending_create = "PENDING_CREATE"
    pending_update = "PENDING_UPDATE"
    pending_delete = "PENDING_DELETE"
    inactive = "INACTIVE"
    error = "ERROR"


def _check_spec(value: str) -> str:
    if value not in SPECS:
        raise ValueError(f"spec must be one of {list(SPECS)}, got {value!r}")
    return value


Spec = Annotated[str, AfterValidator(_check_spec)]


class NatGatewayCreateOptions(BaseModel):
    name: str
    spec: Spec
    router_id: str
    internal_network_id: str
    description: Optional[str] = None
    tenant_id: Optional[str] = None


class NatGatewayUpdateOptions(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    spec: Optional[Spec] = None


class NatGateway(BaseModel):
    id: str
    name: NullableStr = ""
    description: NullableStr = ""
    spec: NullableStr = ""
    status: str
    router_id: NullableStr = ""
    internal_network_id: NullableStr = ""
    tenant_id: NullableStr = ""
    admin_state_up: bool = True


class CreateResult(Result):
    def extract(self) -> NatGateway:
        return self.extract_into(NatGateway, "nat_gateway")


class GetResult(CreateResult):
    pass


class UpdateResult(CreateResult):
    pass


class DeleteResult(Result):
    pass


async def create(client: ServiceClient, opts: NatGatewayCreateOptions) -> CreateResult:
    body = build_request_body(opts, "nat_gateway")
    logger.debug(f"Create NAT gateway options: {body}")
    return await CreateResult.from_call(client.post(client.service_url(RESOURCE_PATH), body))


async def get(client: ServiceClient, gateway_id: str) -> GetResult:
    return await GetResult.from_call(client.get(client.service_url(RESOURCE_PATH, gateway_id)))


async def update(
    client: ServiceClient, gateway_id: str, opts: NatGatewayUpdateOptions
) -> UpdateResult:
    body = build_request_body(opts, "nat_gateway")
    logger.debug(f"Update NAT gateway {gateway_id} options: {body}")
    return await UpdateResult.from_call(
        client.put(client.service_url(RESOURCE_PATH, gateway_id), body, ok_codes=(200,))
    )


async def delete(client: ServiceClient, gateway_id: str) -> DeleteResult:
    return await DeleteResult.from_call(client.delete(client.service_url(RESOURCE_PATH, gateway_id)))


class NatGatewayStateRefresher:
    def __init__(self, client: ServiceClient, gateway_id: str):
        self.client = client
        self.gateway_id = gateway_id

    async def refresh(self) -> PollOutcome:
        gateway = (await get(self.client, self.gateway_id)).extract()
        logger.debug(f"NAT gateway {gateway.id} status: {gateway.status}")
        return PollOutcome(gateway, gateway.status)


class NatGatewayDeleteRefresher(DeleteRefresher):
    kind = "NAT gateway"
    deleting_states = frozenset({NatGatewayStatus.pending_delete.value})
    failed_states = frozenset({NatGatewayStatus.error.value})

    async def fetch(self) -> PollOutcome:
        gateway = (await get(self.client, self.resource_id)).extract()
        return PollOutcome(gateway, gateway.status)

    async def issue_delete(self) -> Optional[CloudError]:
        return (await delete(self.client, self.resource_id)).extract_err()
