from pydantic import ValidationError

from cloud_resource_client import volumes
from cloud_resource_client.errors import CloudError, ResourceError
from cloud_resource_client.models import DELETED
from cloud_resource_client.resource import (
    TIMEOUT_CREATE,
    TIMEOUT_DELETE,
    TIMEOUT_UPDATE,
    BaseResource,
    ResourceData,
    check_deleted,
)
from cloud_resource_client.service_client import ServiceClient
from cloud_resource_client.volumes import (
    DeleteOptions,
    ExtendOptions,
    ExtendSizeOpts,
    VolumeCreateOptions,
    VolumeDeleteRefresher,
    VolumeOpts,
    VolumeStateRefresher,
    VolumeStatus,
    VolumeUpdateOptions,
)

VOLUME_FIELDS = (
    "availability_zone",
    "volume_type",
    "name",
    "description",
    "size",
    "backup_id",
    "snapshot_id",
    "image_id",
    "multiattach",
    "metadata",
    "tags",
    "enterprise_project_id",
)
READ_FIELDS = (
    "availability_zone",
    "volume_type",
    "name",
    "description",
    "size",
    "multiattach",
    "metadata",
    "tags",
)

CREATE_PENDING = {VolumeStatus.creating.value}
CREATE_TARGET = {VolumeStatus.available.value}
EXTEND_PENDING = {VolumeStatus.extending.value}
EXTEND_TARGET = {VolumeStatus.available.value, VolumeStatus.in_use.value}
DELETE_PENDING = {
    VolumeStatus.creating.value,
    VolumeStatus.available.value,
    VolumeStatus.extending.value,
    VolumeStatus.deleting.value,
}


class VolumeResource(BaseResource):
    what = "volume"

    def client(self, data: ResourceData) -> ServiceClient:
        return self.config.block_storage_v2_client(self.session, self.region(data))

    async def create(self, data: ResourceData) -> None:
        client = self.client(data)
        fields = {key: data.get(key) for key in VOLUME_FIELDS if data.get(key) is not None}
        try:
            opts = VolumeCreateOptions(volume=VolumeOpts(**fields))
        except ValidationError as e:
            raise ResourceError(f"Invalid {self.what} options: {e}") from e

        try:
            job = (await volumes.create(client, opts)).extract()
        except CloudError as e:
            raise ResourceError(f"Error creating {self.what}: {e}") from e
        if not job.volume_ids:
            raise ResourceError(f"Error creating {self.what}: job {job.job_id} returned no volume ID")

        volume_id = job.volume_ids[0]
        self.logger.debug(f"Waiting for {self.what} ({volume_id}) to become available")
        await self.wait(
            VolumeStateRefresher(client, volume_id),
            CREATE_PENDING,
            CREATE_TARGET,
            data.timeout(TIMEOUT_CREATE),
            "creating",
        )

        data.set_id(volume_id)
        await self.read(data)

    async def read(self, data: ResourceData) -> None:
        client = self.client(data)
        try:
            volume = (await volumes.get(client, data.id)).extract()
        except CloudError as e:
            check_deleted(data, e, self.what)
            return

        for key in READ_FIELDS:
            data.set(key, getattr(volume, key))
        data.set("status", volume.status)
        data.set("region", self.region(data))

    async def update(self, data: ResourceData) -> None:
        client = self.client(data)

        changes = {key: data.get(key) for key in ("name", "description") if data.has_change(key)}
        if changes:
            self.logger.debug(f"Update {self.what} {data.id} with {changes}")
            err = (
                await volumes.update(client, data.id, VolumeUpdateOptions(**changes))
            ).extract_err()
            if err is not None:
                raise ResourceError(f"Error updating {self.what}: {err}") from err

        if data.has_change("size"):
            new_size = data.get("size")
            try:
                opts = ExtendOptions(size_opts=ExtendSizeOpts(new_size=new_size))
            except ValidationError as e:
                raise ResourceError(f"Invalid {self.what} size {new_size!r}: {e}") from e

            err = (await volumes.extend_size(client, data.id, opts)).extract_err()
            if err is not None:
                raise ResourceError(f"Error extending {self.what}: {err}") from err

            await self.wait(
                VolumeStateRefresher(client, data.id),
                EXTEND_PENDING,
                EXTEND_TARGET,
                data.timeout(TIMEOUT_UPDATE),
                "extending",
            )

        await self.read(data)

    async def delete(self, data: ResourceData) -> None:
        client = self.client(data)
        opts = DeleteOptions(cascade=bool(data.get("cascade", False)))
        await self.wait(
            VolumeDeleteRefresher(client, data.id, opts),
            DELETE_PENDING,
            {DELETED},
            data.timeout(TIMEOUT_DELETE),
            "deleting",
        )
        data.set_id("")
