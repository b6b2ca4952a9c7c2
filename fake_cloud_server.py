import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from aiohttp import web
from loguru import logger


class FakeResource:
    """A resource whose status settles after a delay, like a real async backend"""

    def __init__(self, body: Dict[str, Any], status: str, settle_status: str, settle_after: float):
        self.body = body
        self.status = status
        self.settle_status = settle_status
        self.settle_at = datetime.now().timestamp() + settle_after
        self.remove_at: Optional[float] = None

    def transition(self, status: str, settle_status: str, settle_after: float) -> None:
        self.status = status
        self.settle_status = settle_status
        self.settle_at = datetime.now().timestamp() + settle_after

    def refresh(self) -> None:
        if self.settle_at is not None and datetime.now().timestamp() >= self.settle_at:
            self.status = self.settle_status
            self.settle_at = None

    def removed(self) -> bool:
        return self.remove_at is not None and datetime.now().timestamp() >= self.remove_at

    def to_dict(self) -> Dict[str, Any]:
        return {**self.body, "status": self.status}


class FakeCloudServer:
    def __init__(
        self,
        completion_time: float = 1.0,
        deletion_time: float = 0.5,
        drop_deletes: int = 0,
        error_status: Optional[int] = None,
        raw_create_body: Optional[str] = None,
        project_id: str = "project",
    ):
        self.completion_time = completion_time
        self.deletion_time = deletion_time
        self.drop_deletes = drop_deletes
        self.error_status = error_status
        self.raw_create_body = raw_create_body
        self.project_id = project_id
        self.volumes: Dict[str, FakeResource] = {}
        self.gateways: Dict[str, FakeResource] = {}
        self.requests: List[Tuple[str, str]] = []
        self.queries: List[str] = []
        self.logger = logger

        self.app = web.Application(middlewares=[self.record_request])
        volumes_v2 = f"/v2/{project_id}/cloudvolumes"
        volumes_v21 = f"/v2.1/{project_id}/cloudvolumes"
        self.app.router.add_post(volumes_v21, self.handle_create_volume)
        self.app.router.add_post(volumes_v21 + "/{id}/action", self.handle_extend_volume)
        self.app.router.add_get(volumes_v2 + "/{id}", self.handle_get_volume)
        self.app.router.add_put(volumes_v2 + "/{id}", self.handle_update_volume)
        self.app.router.add_delete(volumes_v2 + "/{id}", self.handle_delete_volume)
        self.app.router.add_post("/v2.0/nat_gateways", self.handle_create_gateway)
        self.app.router.add_get("/v2.0/nat_gateways/{id}", self.handle_get_gateway)
        self.app.router.add_put("/v2.0/nat_gateways/{id}", self.handle_update_gateway)
        self.app.router.add_delete("/v2.0/nat_gateways/{id}", self.handle_delete_gateway)

    @web.middleware
    async def record_request(self, request, handler):
        self.requests.append((request.method, request.path))
        self.queries.append(request.query_string)
        return await handler(request)

    def count(self, method: str, suffix: str = "") -> int:
        return sum(1 for m, path in self.requests if m == method and path.endswith(suffix))

    @staticmethod
    def not_found(what: str, resource_id: str) -> web.Response:
        return web.json_response(
            {"error": {"message": f"{what} {resource_id} could not be found"}}, status=404
        )

    def lookup(self, store: Dict[str, FakeResource], resource_id: str) -> Optional[FakeResource]:
        resource = store.get(resource_id)
        if resource is None:
            return None
        if resource.removed():
            self.logger.info(f"Resource {resource_id} removed")
            del store[resource_id]
            return None
        resource.refresh()
        return resource

    def hold_status(self, resource_id: str, status: str) -> None:
        resource = self.volumes.get(resource_id) or self.gateways[resource_id]
        resource.status = status
        resource.settle_at = None

    def begin_delete(self, resource: FakeResource, deleting_status: str) -> bool:
        if self.drop_deletes > 0:
            self.drop_deletes -= 1
            self.logger.info("Dropping delete request")
            return False
        resource.status = deleting_status
        resource.settle_at = None
        resource.remove_at = datetime.now().timestamp() + self.deletion_time
        return True

    async def handle_create_volume(self, request):
        if self.raw_create_body is not None:
            return web.Response(text=self.raw_create_body, status=202)
        data = await request.json()
        volume = data["volume"]
        volume_id = str(uuid.uuid4())
        body = {
            "id": volume_id,
            "name": volume.get("name", ""),
            "description": volume.get("description"),
            "size": volume.get("size", 10),
            "availability_zone": volume["availability_zone"],
            "volume_type": volume["volume_type"],
            "multiattach": volume.get("multiattach", False),
            "metadata": volume.get("metadata", {}),
            "tags": volume.get("tags", {}),
        }
        self.volumes[volume_id] = FakeResource(body, "creating", "available", self.completion_time)
        self.logger.info(f"Creating volume {volume_id}")
        return web.json_response(
            {"job_id": str(uuid.uuid4()), "volume_ids": [volume_id]}, status=202
        )

    async def handle_get_volume(self, request):
        if self.error_status is not None:
            return web.json_response({"error": "injected"}, status=self.error_status)
        volume_id = request.match_info["id"]
        volume = self.lookup(self.volumes, volume_id)
        if volume is None:
            return self.not_found("Volume", volume_id)
        self.logger.info(f"Returning volume {volume_id} status {volume.status}")
        return web.json_response({"volume": volume.to_dict()})

    async def handle_update_volume(self, request):
        volume_id = request.match_info["id"]
        volume = self.lookup(self.volumes, volume_id)
        if volume is None:
            return self.not_found("Volume", volume_id)
        data = await request.json()
        volume.body.update(data["volume"])
        return web.json_response({"volume": volume.to_dict()})

    async def handle_extend_volume(self, request):
        volume_id = request.match_info["id"]
        volume = self.lookup(self.volumes, volume_id)
        if volume is None:
            return self.not_found("Volume", volume_id)
        data = await request.json()
        volume.body["size"] = data["os-extend"]["new_size"]
        volume.transition("extending", "available", self.completion_time)
        return web.json_response({"job_id": str(uuid.uuid4())}, status=202)

    async def handle_delete_volume(self, request):
        volume_id = request.match_info["id"]
        volume = self.lookup(self.volumes, volume_id)
        if volume is None:
            return self.not_found("Volume", volume_id)
        self.begin_delete(volume, "deleting")
        return web.Response(status=202)

    async def handle_create_gateway(self, request):
        data = await request.json()
        gateway = data["nat_gateway"]
        gateway_id = str(uuid.uuid4())
        body = {
            "id": gateway_id,
            "name": gateway["name"],
            "description": gateway.get("description", ""),
            "spec": gateway["spec"],
            "router_id": gateway["router_id"],
            "internal_network_id": gateway["internal_network_id"],
            "tenant_id": gateway.get("tenant_id", self.project_id),
            "admin_state_up": True,
        }
        resource = FakeResource(body, "PENDING_CREATE", "ACTIVE", self.completion_time)
        self.gateways[gateway_id] = resource
        self.logger.info(f"Creating NAT gateway {gateway_id}")
        return web.json_response({"nat_gateway": resource.to_dict()}, status=201)

    async def handle_get_gateway(self, request):
        if self.error_status is not None:
            return web.json_response({"error": "injected"}, status=self.error_status)
        gateway_id = request.match_info["id"]
        gateway = self.lookup(self.gateways, gateway_id)
        if gateway is None:
            return self.not_found("NAT gateway", gateway_id)
        self.logger.info(f"Returning NAT gateway {gateway_id} status {gateway.status}")
        return web.json_response({"nat_gateway": gateway.to_dict()})

    async def handle_update_gateway(self, request):
        gateway_id = request.match_info["id"]
        gateway = self.lookup(self.gateways, gateway_id)
        if gateway is None:
            return self.not_found("NAT gateway", gateway_id)
        data = await request.json()
        gateway.body.update(data["nat_gateway"])
        return web.json_response({"nat_gateway": gateway.to_dict()})

    async def handle_delete_gateway(self, request):
        gateway_id = request.match_info["id"]
        gateway = self.lookup(self.gateways, gateway_id)
        if gateway is None:
            return self.not_found("NAT gateway", gateway_id)
        self.begin_delete(gateway, "PENDING_DELETE")
        return web.Response(status=204)

    async def start(self, port: int = 8080):
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, "localhost", port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return runner
