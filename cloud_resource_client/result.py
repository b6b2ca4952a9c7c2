from typing import Any, Awaitable, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from cloud_resource_client.errors import CloudError, RemoteError
from cloud_resource_client.service_client import Response

M = TypeVar("M", bound=BaseModel)
R = TypeVar("R", bound="Result")


class Result(BaseModel):
    """Either the decoded body of one API call or the error it produced"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    body: Any = None
    err: Optional[CloudError] = None
    status: int = 0
    url: str = ""

    @classmethod
    async def from_call(cls: Type[R], call: Awaitable[Response]) -> R:
        try:
            response = await call
        except CloudError as e:
            return cls(err=e)
        return cls(body=response.data, status=response.status, url=response.url)

    @classmethod
    def from_error(cls: Type[R], err: CloudError) -> R:
        return cls(err=err)

    def extract_err(self) -> Optional[CloudError]:
        return self.err

    def extract_into(self, model: Type[M], root_key: Optional[str] = None) -> M:
        if self.err is not None:
            raise self.err
        data = self.body
        if root_key is not None:
            if not isinstance(data, dict) or root_key not in data:
                raise RemoteError(self.status, f"response body has no {root_key!r} key", self.url)
            data = data[root_key]
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RemoteError(self.status, f"invalid response body: {e}", self.url) from e
