from enum import Enum
from typing import Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from cloud_resource_client.errors import CloudError
from cloud_resource_client.models import NullableDict, NullableStr, PollOutcome
from cloud_resource_client.result import Result
from cloud_resource_client.service_client import ServiceClient, build_request_body
from cloud_resource_client.state_waiter import DeleteRefresher

RESOURCE_PATH = "cloudvolumes"


class VolumeStatus(str, Enum):
    creating = "creating"
    available = "available"
    in_use = "in-use"
    extending = "extending"
    deleting = "deleting"
    error = "error"
    error_deleting = "error_deleting"
    error_extending = "error_extending"


class SchedulerOpts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    storage_id: Optional[str] = Field(default=None, alias="dedicated_storage_id")


class VolumeOpts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    availability_zone: str
    volume_type: str
    name: Optional[str] = None
    description: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)
    count: Optional[int] = None
    backup_id: Optional[str] = None
    snapshot_id: Optional[str] = None
    image_id: Optional[str] = Field(default=None, alias="imageRef")
    multiattach: Optional[bool] = None
    metadata: Optional[Dict[str, str]] = None
    tags: Optional[Dict[str, str]] = None
    enterprise_project_id: Optional[str] = None


class VolumeCreateOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    volume: VolumeOpts
    scheduler: Optional[SchedulerOpts] = Field(
        default=None, alias="OS-SCH-HNT:scheduler_hints"
    )
    server_id: Optional[str] = None


class VolumeUpdateOptions(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ExtendSizeOpts(BaseModel):
    new_size: int = Field(gt=0)


class ExtendOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    size_opts: ExtendSizeOpts = Field(alias="os-extend")


class DeleteOptions(BaseModel):
    cascade: bool = False

    def to_query(self) -> str:
        return f"?cascade={str(self.cascade).lower()}"


class Volume(BaseModel):
    id: str
    name: NullableStr = ""
    status: str
    size: int = 0
    description: Optional[str] = None
    availability_zone: NullableStr = ""
    volume_type: NullableStr = ""
    multiattach: bool = False
    metadata: NullableDict = Field(default_factory=dict)
    tags: NullableDict = Field(default_factory=dict)


class VolumeJob(BaseModel):
    job_id: str
    order_id: Optional[str] = None
    volume_ids: List[str] = Field(default_factory=list)


class JobResult(Result):
    def extract(self) -> VolumeJob:
        return self.extract_into(VolumeJob)


class GetResult(Result):
    def extract(self) -> Volume:
        return self.extract_into(Volume, "volume")


class UpdateResult(GetResult):
    pass


class DeleteResult(Result):
    pass


def _v21(client: ServiceClient) -> ServiceClient:
    return client.with_version("v2", "v2.1")


async def create(client: ServiceClient, opts: VolumeCreateOptions) -> JobResult:
    body = build_request_body(opts)
    logger.debug(f"Create volume options: {body}")
    new_client = _v21(client)
    return await JobResult.from_call(
        new_client.post(new_client.service_url(RESOURCE_PATH), body)
    )


async def get(client: ServiceClient, volume_id: str) -> GetResult:
    return await GetResult.from_call(client.get(client.service_url(RESOURCE_PATH, volume_id)))


async def update(client: ServiceClient, volume_id: str, opts: VolumeUpdateOptions) -> UpdateResult:
    body = build_request_body(opts, "volume")
    logger.debug(f"Update volume {volume_id} options: {body}")
    return await UpdateResult.from_call(
        client.put(client.service_url(RESOURCE_PATH, volume_id), body, ok_codes=(200,))
    )


async def extend_size(client: ServiceClient, volume_id: str, opts: ExtendOptions) -> JobResult:
    body = build_request_body(opts)
    new_client = _v21(client)
    return await JobResult.from_call(
        new_client.post(
            new_client.service_url(RESOURCE_PATH, volume_id, "action"), body, ok_codes=(202,)
        )
    )


async def delete(
    client: ServiceClient, volume_id: str, opts: Optional[DeleteOptions] = None
) -> DeleteResult:
    url = client.service_url(RESOURCE_PATH, volume_id)
    if opts is not None:
        url += opts.to_query()
    return await DeleteResult.from_call(client.delete(url, ok_codes=(200, 202)))


class VolumeStateRefresher:
    def __init__(self, client: ServiceClient, volume_id: str):
        self.client = client
        self.volume_id = volume_id

    async def refresh(self) -> PollOutcome:
        volume = (await get(self.client, self.volume_id)).extract()
        logger.debug(f"Volume {volume.id} status: {volume.status}")
        return PollOutcome(volume, volume.status)


class VolumeDeleteRefresher(DeleteRefresher):
    kind = "volume"
    deleting_states = frozenset({VolumeStatus.deleting.value})
    failed_states = frozenset(
        {
            VolumeStatus.error.value,
            VolumeStatus.error_deleting.value,
            VolumeStatus.error_extending.value,
        }
    )

    def __init__(
        self, client: ServiceClient, volume_id: str, opts: Optional[DeleteOptions] = None
    ):
        super().__init__(client, volume_id)
        self.opts = opts

    async def fetch(self) -> PollOutcome:
        volume = (await get(self.client, self.resource_id)).extract()
        return PollOutcome(volume, volume.status)

    async def issue_delete(self) -> Optional[CloudError]:
        return (await delete(self.client, self.resource_id, self.opts)).extract_err()
