# ABOUTME: Local-only secret state: the pursuer coordinate, its salt and the fog-of-war tracker.
# ABOUTME: Never serialized in plaintext outside the commitment store.

from pydantic import BaseModel, Field

from .session import Coord

SEEN_WINDOW = 12


class SecretState(BaseModel):
    """The evader's private view of the board"""

    pursuer: Coord = Field(description="True pursuer coordinate")
    salt: int = Field(ge=1, le=0xFFFFFFFF, description="Commitment salt (non-zero u32)")
    commitment_hex: str = Field(description="Current 32-byte commitment, 0x-prefixed hex")
    last_known_ward: Coord = Field(description="Delayed ward position the pursuer heads for")
    seen_ward: list[Coord] = Field(
        default_factory=list,
        max_length=SEEN_WINDOW,
        description="Recent visible ward positions, oldest first"
    )

    model_config = {"frozen": True}

    def __repr__(self) -> str:
        return f"SecretState(commitment_hex={self.commitment_hex!r})"

    __str__ = __repr__
