# ABOUTME: Ledger transport protocol and the wire models exchanged with it (budgets, sends, confirmations).
# ABOUTME: A transport performs one stage of a write attempt per call and raises LedgerError on network failure.

import math
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class Invocation(BaseModel):
    """One contract entrypoint call"""

    operation: str = Field(description="Contract entrypoint name")
    args: dict[str, Any] = Field(default_factory=dict)
    source: str | None = Field(default=None, description="Signing account, if not the transport default")

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


def _scale(value: int, factor: float) -> int:
    return math.ceil(value * factor)


class ResourceBudget(BaseModel):
    """Simulated resource usage of a transaction"""

    instructions: int = Field(ge=0)
    read_bytes: int = Field(ge=0)
    write_bytes: int = Field(ge=0)
    resource_fee: int = Field(ge=0)

    model_config = {"frozen": True}

    def escalate(
        self,
        factor: float,
        fee_floor: float,
        max_write_bytes: int,
        max_resource_fee: int,
    ) -> "ResourceBudget":
        """Scale every resource by factor; write bytes and fee are clamped to their ceilings"""
        return ResourceBudget(
            instructions=_scale(self.instructions, factor),
            read_bytes=_scale(self.read_bytes, factor),
            write_bytes=min(_scale(self.write_bytes, factor), max_write_bytes),
            resource_fee=min(_scale(self.resource_fee, max(fee_floor, factor)), max_resource_fee),
        )


class Simulation(BaseModel):
    budget: ResourceBudget
    return_value: Any = None

    model_config = {"arbitrary_types_allowed": True}


class SendStatus(str, Enum):
    PENDING = "PENDING"
    DUPLICATE = "DUPLICATE"
    TRY_AGAIN_LATER = "TRY_AGAIN_LATER"
    ERROR = "ERROR"


class SendResponse(BaseModel):
    status: SendStatus
    tx_hash: str | None = None
    error: str | None = None


class TxStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    NOT_FOUND = "NOT_FOUND"
    PENDING = "PENDING"


class Confirmation(BaseModel):
    status: TxStatus
    error: str | None = None
    return_value: Any = None

    model_config = {"arbitrary_types_allowed": True}


class TxResult(BaseModel):
    """Outcome of a completed write; unconfirmed means the final status was never observed"""

    operation: str
    tx_hash: str = "UNKNOWN"
    confirmed: bool = True
    attempts: int = 1
    return_value: Any = None

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


@runtime_checkable
class LedgerTransport(Protocol):
    """Stages of a write attempt plus read-only calls against the game contract"""

    async def build(self, invocation: Invocation) -> Any: ...

    async def simulate(self, tx: Any) -> Simulation: ...

    async def sign(self, tx: Any, budget: ResourceBudget) -> Any: ...

    async def send(self, signed: Any) -> SendResponse: ...

    async def confirm(self, tx_hash: str, timeout: float) -> Confirmation: ...

    async def read(self, invocation: Invocation) -> Any: ...
