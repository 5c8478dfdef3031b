# ABOUTME: Pydantic models for two-player lobby invitations and responses.
# ABOUTME: Field names are kept short since they are serialized into shareable codes.

from typing import Literal

from pydantic import BaseModel, Field


class LobbyCode(BaseModel):
    """Invitation shared by the dispatcher with the evader"""

    v: Literal[1] = 1
    sid: int = Field(ge=0, le=0xFFFFFFFF, description="Session id")
    d: str = Field(description="Dispatcher address")
    net: str = Field(description="Network passphrase or short name")
    cid: str = Field(description="Game contract id")

    model_config = {"frozen": True, "extra": "ignore"}


class LobbyResponse(BaseModel):
    """Acceptance shared back by the evader"""

    v: Literal[1] = 1
    sid: int = Field(ge=0, le=0xFFFFFFFF, description="Session id, must match the invitation")
    a: str = Field(description="Evader address")

    model_config = {"frozen": True, "extra": "ignore"}
