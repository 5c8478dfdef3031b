# ABOUTME: Preflight check that the deployed ping verifier matches the locally built circuit.
# ABOUTME: Secure-mode sessions fail closed on any mismatch; insecure sessions always pass.

from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field

from .encoding import CURRENT_LAYOUT_VERSION, ProofKind, layout_for

ReasonCode = Literal[
    "deployed_ping_verifier_mismatch",
    "layout_version_mismatch",
    "circuit_version_mismatch",
    "vk_hash_mismatch",
]

REDACTED_REASON = "secure-mode ZK compatibility preflight failed (details redacted)"


class CircuitManifest(BaseModel):
    """Build metadata of a locally compiled circuit"""

    circuit_name: str
    circuit_version: str
    proof_system: str = "ultrahonk"
    curve: str = "bn254"
    layout_version: str = Field(description="Public input layout tag, e.g. 'v3'")
    public_fields: tuple[str, ...]
    vk_hash: str

    model_config = {"frozen": True}


PING_DISTANCE_MANIFEST = CircuitManifest(
    circuit_name=ProofKind.BEACON_DISTANCE.circuit,
    circuit_version="v3",
    layout_version=f"v{CURRENT_LAYOUT_VERSION}",
    public_fields=layout_for(ProofKind.BEACON_DISTANCE).fields,
    vk_hash="0d47a746243c9a03595e44116ca5d8afb44fd324f8486e73e1ed18a78845b483",
)


class CompatibilityDecision(BaseModel):
    ok: bool
    layout_version: str
    circuit_version: str
    vk_hash: str
    reason_codes: list[ReasonCode] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)


def evaluate_ping_verifier_compatibility(
    deployed_ping_verifier: str,
    secure_mode: bool,
    expected_ping_verifier: str = "",
    expected_layout_version: str = "v3",
    expected_circuit_version: str = "v3",
    expected_vk_hash: str = PING_DISTANCE_MANIFEST.vk_hash,
    manifest: CircuitManifest = PING_DISTANCE_MANIFEST,
) -> CompatibilityDecision:
    """
    Decide whether secure play may start against the deployed ping verifier.

    Empty expectations are not checked. The human-readable reason never
    includes the mismatching values.
    """
    decision = CompatibilityDecision(
        ok=True,
        layout_version=manifest.layout_version,
        circuit_version=manifest.circuit_version,
        vk_hash=manifest.vk_hash,
    )
    if not secure_mode:
        return decision

    codes: list[ReasonCode] = []
    if expected_ping_verifier and expected_ping_verifier.strip().upper() != deployed_ping_verifier.strip().upper():
        codes.append("deployed_ping_verifier_mismatch")
    if expected_layout_version and expected_layout_version != manifest.layout_version:
        codes.append("layout_version_mismatch")
    if expected_circuit_version and expected_circuit_version != manifest.circuit_version:
        codes.append("circuit_version_mismatch")
    if expected_vk_hash and expected_vk_hash.strip().lower() != manifest.vk_hash.strip().lower():
        codes.append("vk_hash_mismatch")

    if not codes:
        return decision

    logger.warning(f"ZK compatibility preflight failed: {', '.join(codes)}")
    return decision.model_copy(update={"ok": False, "reason_codes": codes, "reasons": [REDACTED_REASON]})
