"""Proof client, public-input layouts and verifier compatibility checks"""

from .compatibility import (
    PING_DISTANCE_MANIFEST,
    CircuitManifest,
    CompatibilityDecision,
    evaluate_ping_verifier_compatibility,
)
from .encoding import (
    CURRENT_LAYOUT_VERSION,
    FieldLayout,
    ProofBundle,
    ProofKind,
    field_to_u32,
    layout_for,
    layout_versions,
    normalize_field,
    u32_to_field,
)
from .exceptions import (
    MalformedProofResponse,
    ProverRequestFailed,
    PublicInputMismatch,
    UnknownLayout,
)
from .prover_client import (
    MoveProofRequest,
    PingDistanceRequest,
    ProverClient,
    ProveResponse,
    TurnStatusRequest,
    check_session_binding,
)

__all__ = [
    "CURRENT_LAYOUT_VERSION",
    "PING_DISTANCE_MANIFEST",
    "CircuitManifest",
    "CompatibilityDecision",
    "FieldLayout",
    "MalformedProofResponse",
    "MoveProofRequest",
    "PingDistanceRequest",
    "ProofBundle",
    "ProofKind",
    "ProveResponse",
    "ProverClient",
    "ProverRequestFailed",
    "PublicInputMismatch",
    "TurnStatusRequest",
    "UnknownLayout",
    "check_session_binding",
    "evaluate_ping_verifier_compatibility",
    "field_to_u32",
    "layout_for",
    "layout_versions",
    "normalize_field",
    "u32_to_field",
]
