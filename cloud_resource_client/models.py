from typing import Annotated, Any, Dict, FrozenSet, NamedTuple, Optional

from pydantic import BaseModel, BeforeValidator, Field, model_validator

# Target label meaning "the resource is gone"; a 404 counts as reaching it.
DELETED = "DELETED"

# Response fields the server may send as null
NullableStr = Annotated[str, BeforeValidator(lambda value: "" if value is None else value)]
NullableDict = Annotated[
    Dict[str, str], BeforeValidator(lambda value: {} if value is None else value)
]


class PollOutcome(NamedTuple):
    value: Any
    state: str


class StateChange(BaseModel):
    state: str
    previous_state: Optional[str] = None
    value: Any = None
    elapsed_time: float


class StateChangeConfig(BaseModel):
    pending: FrozenSet[str]
    target: FrozenSet[str]
    poll_interval: Optional[float] = Field(default=None, gt=0)
    delay: float = Field(default=0.0, ge=0)
    min_timeout: float = Field(default=0.0, ge=0)
    timeout: float = Field(default=600.0, gt=0)  # 10 minutes
    max_backoff: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def check_states(self) -> "StateChangeConfig":
        if not self.target:
            raise ValueError("target states must not be empty")
        if not self.pending:
            raise ValueError("pending states must not be empty")
        overlap = self.pending & self.target
        if overlap:
            raise ValueError(f"states {sorted(overlap)} are both pending and target")
        if self.timeout <= self.delay:
            raise ValueError("timeout must be greater than the initial delay")
        return self
