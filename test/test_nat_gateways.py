import pytest
from loguru import logger
from pydantic import ValidationError

from cloud_resource_client import nat_gateways
from cloud_resource_client.errors import NotFoundError, RemoteError, TransportError
from cloud_resource_client.models import DELETED, StateChangeConfig
from cloud_resource_client.result import Result
from cloud_resource_client.nat_gateways import (
    CreateResult,
    NatGatewayCreateOptions,
    NatGatewayDeleteRefresher,
    NatGatewayStateRefresher,
    NatGatewayUpdateOptions,
)
from cloud_resource_client.service_client import ServiceClient, build_request_body
from cloud_resource_client.state_waiter import wait_for_state


def gateway_options(**overrides) -> NatGatewayCreateOptions:
    values = dict(name="nat-1", spec="1", router_id="router-1", internal_network_id="net-1")
    values.update(overrides)
    return NatGatewayCreateOptions(**values)


def test_create_body_has_only_set_fields():
    """Test that the create body carries only the fields that were set."""
    body = build_request_body(gateway_options(description=""), "nat_gateway")

    assert body == {
        "nat_gateway": {
            "name": "nat-1",
            "spec": "1",
            "router_id": "router-1",
            "internal_network_id": "net-1",
            "description": "",
        }
    }


def test_update_body_has_only_changed_fields():
    """Test that the update body carries only the changed fields."""
    body = build_request_body(NatGatewayUpdateOptions(spec="3"), "nat_gateway")

    assert body == {"nat_gateway": {"spec": "3"}}


@pytest.mark.parametrize("spec", ["0", "5", ""])
def test_invalid_spec_rejected(spec):
    """Test that specs outside 1 to 4 are rejected."""
    with pytest.raises(ValidationError):
        gateway_options(spec=spec)
    with pytest.raises(ValidationError):
        NatGatewayUpdateOptions(spec=spec)


def test_missing_required_field_rejected():
    """Test that a create without internal_network_id is rejected."""
    with pytest.raises(ValidationError):
        NatGatewayCreateOptions(name="nat-1", spec="1", router_id="router-1")


@pytest.mark.asyncio
async def test_create_and_wait_until_active(server, vpc_client):
    """Test creating a NAT gateway and waiting for ACTIVE."""
    gateway = (await nat_gateways.create(vpc_client, gateway_options())).extract()
    assert gateway.status == "PENDING_CREATE"

    config = StateChangeConfig(
        pending={"PENDING_CREATE"}, target={"ACTIVE"}, poll_interval=0.05, timeout=5.0
    )
    active = await wait_for_state(NatGatewayStateRefresher(vpc_client, gateway.id), config)

    assert active.id == gateway.id
    assert active.status == "ACTIVE"
    assert active.router_id == "router-1"


@pytest.mark.asyncio
async def test_get_missing_gateway_is_not_found(server, vpc_client):
    """Test that getting an absent gateway yields NotFoundError."""
    result = await nat_gateways.get(vpc_client, "missing")

    assert isinstance(result.extract_err(), NotFoundError)
    with pytest.raises(NotFoundError):
        result.extract()


@pytest.mark.asyncio
async def test_update_changes_only_given_fields(server, vpc_client):
    """Test that an update leaves the other fields alone."""
    gateway = (await nat_gateways.create(vpc_client, gateway_options(description="old"))).extract()

    updated = (
        await nat_gateways.update(vpc_client, gateway.id, NatGatewayUpdateOptions(name="nat-2"))
    ).extract()

    assert updated.name == "nat-2"
    assert updated.description == "old"


@pytest.mark.asyncio
async def test_delete_twice_on_absent_gateway(server, vpc_client):
    """Test that deleting an absent gateway is not found every time."""
    first = await nat_gateways.delete(vpc_client, "missing")
    second = await nat_gateways.delete(vpc_client, "missing")

    assert isinstance(first.extract_err(), NotFoundError)
    assert isinstance(second.extract_err(), NotFoundError)


@pytest.mark.asyncio
async def test_delete_waiter_reissues_dropped_delete(server, vpc_client):
    """Test that dropped deletes are sent again until the gateway is gone."""
    server_instance, _ = server
    gateway = (await nat_gateways.create(vpc_client, gateway_options())).extract()
    server_instance.drop_deletes = 2

    refresher = NatGatewayDeleteRefresher(vpc_client, gateway.id)
    config = StateChangeConfig(
        pending={"ACTIVE", "PENDING_CREATE", "PENDING_DELETE"},
        target={DELETED},
        poll_interval=0.05,
        timeout=5.0,
    )
    assert await wait_for_state(refresher, config) is None

    assert refresher.delete_attempts == 3
    assert server_instance.count("DELETE") == 3
    assert gateway.id not in server_instance.gateways
    assert isinstance((await nat_gateways.get(vpc_client, gateway.id)).extract_err(), NotFoundError)


@pytest.mark.asyncio
async def test_server_error_stops_waiter(server, vpc_client):
    """Test that a 500 during polling stops the waiter."""
    server_instance, _ = server
    gateway = (await nat_gateways.create(vpc_client, gateway_options())).extract()
    server_instance.error_status = 500

    config = StateChangeConfig(
        pending={"PENDING_CREATE"}, target={"ACTIVE"}, poll_interval=0.05, timeout=5.0
    )
    with pytest.raises(RemoteError) as exc_info:
        await wait_for_state(NatGatewayStateRefresher(vpc_client, gateway.id), config)

    assert exc_info.value.status == 500
    assert server_instance.count("GET") == 1


@pytest.mark.asyncio
async def test_server_unavailable(session):
    """Test that a refused connection yields TransportError."""
    client = ServiceClient(session=session, endpoint="http://localhost:9999/v2.0/")

    result = await nat_gateways.get(client, "gateway-1")

    assert isinstance(result.extract_err(), TransportError)


@pytest.mark.asyncio
async def test_null_string_fields_read_as_empty(server, vpc_client):
    """Test that null string fields in a gateway body are read as empty strings."""
    server_instance, _ = server
    server_instance.completion_time = 0.0
    gateway = (await nat_gateways.create(vpc_client, gateway_options())).extract()
    server_instance.gateways[gateway.id].body["description"] = None
    server_instance.gateways[gateway.id].body["tenant_id"] = None

    config = StateChangeConfig(
        pending={"PENDING_CREATE"}, target={"ACTIVE"}, poll_interval=0.05, timeout=5.0
    )
    active = await wait_for_state(NatGatewayStateRefresher(vpc_client, gateway.id), config)

    assert active.description == ""
    assert active.tenant_id == ""


def test_invalid_body_is_remote_error():
    """Test that a body the model cannot accept is reported as RemoteError."""
    result = CreateResult(
        body={"nat_gateway": {"id": "gateway-1"}}, status=200, url="http://vpc/gateway-1"
    )

    with pytest.raises(RemoteError) as exc_info:
        result.extract()

    assert exc_info.value.status == 200
    assert exc_info.value.url == "http://vpc/gateway-1"
    assert "invalid response body" in exc_info.value.body


def test_missing_root_key_is_remote_error():
    """Test that a body without the expected root key is reported as RemoteError."""
    result = Result(body={"unexpected": {}}, status=200, url="http://vpc/gateway-1")

    with pytest.raises(RemoteError):
        result.extract_into(NatGatewayUpdateOptions, "nat_gateway")


@pytest.mark.asyncio
async def test_not_found_is_not_logged_as_error(server, vpc_client):
    """Test that a 404 is logged at debug level, not error."""
    levels = []
    sink_id = logger.add(lambda message: levels.append(message.record["level"].name), level="DEBUG")
    try:
        result = await nat_gateways.get(vpc_client, "missing")
    finally:
        logger.remove(sink_id)

    assert isinstance(result.extract_err(), NotFoundError)
    assert "DEBUG" in levels
    assert "ERROR" not in levels
