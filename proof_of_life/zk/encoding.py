# ABOUTME: Versioned, fixed-order public field layouts for each proof kind, plus field/u32 conversions.
# ABOUTME: A layout is a contract with the remote verifier and never changes within a version.

from enum import Enum

from pydantic import BaseModel, Field

from .exceptions import MalformedProofResponse, UnknownLayout

FIELD_BYTES = 32
CURRENT_LAYOUT_VERSION = 3
U32_MAX = 0xFFFFFFFF


class ProofKind(str, Enum):
    BEACON_DISTANCE = "beacon-distance"
    MOVEMENT_TRANSITION = "movement-transition"
    STATUS_DISTANCE = "status-distance"

    @property
    def circuit(self) -> str:
        """Prover circuit name serving this kind"""
        return _CIRCUITS[self]


_CIRCUITS: dict[ProofKind, str] = {
    ProofKind.BEACON_DISTANCE: "ping_distance",
    ProofKind.MOVEMENT_TRANSITION: "move_proof",
    ProofKind.STATUS_DISTANCE: "turn_status",
}


def u32_to_field(value: int) -> str:
    """Encode a u32 as a 0x-prefixed 32-byte big-endian field"""
    if not 0 <= value <= U32_MAX:
        raise ValueError(f"value out of u32 range: {value}")
    return "0x" + value.to_bytes(FIELD_BYTES, "big").hex()


def hex_to_bytes32(value: str) -> bytes:
    """Decode a 32-byte hex string (with or without 0x)"""
    h = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        raw = bytes.fromhex(h)
    except ValueError as e:
        raise MalformedProofResponse(f"field is not hex: {value!r}") from e
    if len(raw) != FIELD_BYTES:
        raise MalformedProofResponse(f"expected {FIELD_BYTES}-byte field, got {len(raw)}")
    return raw


def normalize_field(value: str) -> str:
    return "0x" + hex_to_bytes32(value).hex()


def field_to_u32(value: str) -> int:
    """Read the u32 stored big-endian in the last four bytes of a field"""
    return int.from_bytes(hex_to_bytes32(value)[-4:], "big")


class FieldLayout(BaseModel):
    """Ordered public field names for one proof kind at one version"""

    kind: ProofKind
    version: int
    fields: tuple[str, ...] = Field(description="Field names in verifier order")

    model_config = {"frozen": True}

    @property
    def binds_session(self) -> bool:
        return "session_id" in self.fields and "turn" in self.fields

    def index(self, name: str) -> int:
        try:
            return self.fields.index(name)
        except ValueError as e:
            raise UnknownLayout(f"{self.kind.value} v{self.version} has no field '{name}'") from e

    def encode(self, values: dict[str, int | str]) -> list[str]:
        """Produce the ordered field list; ints are encoded as u32 fields"""
        missing = [name for name in self.fields if name not in values]
        if missing:
            raise ValueError(f"missing {self.kind.value} fields: {', '.join(missing)}")
        out: list[str] = []
        for name in self.fields:
            value = values[name]
            out.append(u32_to_field(value) if isinstance(value, int) else normalize_field(value))
        return out

    def decode(self, fields: list[str]) -> dict[str, str]:
        """Map an ordered field list back to names; extra trailing fields are ignored"""
        if len(fields) < len(self.fields):
            raise MalformedProofResponse(
                f"invalid {self.kind.value} public field count={len(fields)}, expected >={len(self.fields)}"
            )
        return {name: normalize_field(fields[i]) for i, name in enumerate(self.fields)}

    def get_u32(self, fields: list[str], name: str) -> int:
        return field_to_u32(fields[self.index(name)])


_LAYOUTS: dict[tuple[ProofKind, int], FieldLayout] = {
    (layout.kind, layout.version): layout
    for layout in (
        # v1: circuit public inputs only, no anti-replay binding
        FieldLayout(kind=ProofKind.BEACON_DISTANCE, version=1, fields=("commitment", "beacon_x", "beacon_y")),
        FieldLayout(kind=ProofKind.STATUS_DISTANCE, version=1, fields=("commitment", "ward_x", "ward_y")),
        FieldLayout(kind=ProofKind.MOVEMENT_TRANSITION, version=1, fields=("commitment_old", "commitment_new")),
        # v3: inputs and outputs flattened, bound to session id and turn
        FieldLayout(
            kind=ProofKind.BEACON_DISTANCE,
            version=3,
            fields=("commitment", "beacon_x", "beacon_y", "session_id", "turn", "distance_squared"),
        ),
        FieldLayout(
            kind=ProofKind.STATUS_DISTANCE,
            version=3,
            fields=("commitment", "ward_x", "ward_y", "session_id", "turn", "distance_squared"),
        ),
        FieldLayout(
            kind=ProofKind.MOVEMENT_TRANSITION,
            version=3,
            fields=("commitment_old", "commitment_new", "session_id", "turn"),
        ),
    )
}


def layout_for(kind: ProofKind, version: int = CURRENT_LAYOUT_VERSION) -> FieldLayout:
    try:
        return _LAYOUTS[(kind, version)]
    except KeyError as e:
        raise UnknownLayout(f"No layout for {kind.value} v{version}") from e


def layout_versions(kind: ProofKind) -> list[int]:
    return sorted(v for (k, v) in _LAYOUTS if k == kind)


class ProofBundle(BaseModel):
    """A proof plus its ordered public fields and the outputs decoded from them"""

    kind: ProofKind
    layout_version: int
    proof: bytes
    fields: list[str]
    commitment: str | None = Field(default=None, description="Commitment output (beacon/status kinds)")
    commitment_old: str | None = None
    commitment_new: str | None = None
    distance_squared: int | None = None

    model_config = {"frozen": True}

    @property
    def layout(self) -> FieldLayout:
        return layout_for(self.kind, self.layout_version)
