# ABOUTME: Async HTTP client for the proof generation service (ping distance, movement, turn status).
# ABOUTME: Re-derives session id and turn from each response's public fields and rejects mismatches.

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field, ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .encoding import (
    CURRENT_LAYOUT_VERSION,
    FieldLayout,
    ProofBundle,
    ProofKind,
    field_to_u32,
    layout_for,
    normalize_field,
)
from .exceptions import MalformedProofResponse, ProverRequestFailed, PublicInputMismatch


class PingDistanceRequest(BaseModel):
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    salt: int = Field(ge=0, le=0xFFFFFFFF)
    tower_x: int = Field(ge=0)
    tower_y: int = Field(ge=0)
    session_id: int = Field(ge=0, le=0xFFFFFFFF)
    turn: int = Field(ge=0, le=0xFFFFFFFF)


class TurnStatusRequest(BaseModel):
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    salt: int = Field(ge=0, le=0xFFFFFFFF)
    cx: int = Field(ge=0, description="Ward x")
    cy: int = Field(ge=0, description="Ward y")
    session_id: int = Field(ge=0, le=0xFFFFFFFF)
    turn: int = Field(ge=0, le=0xFFFFFFFF)


class MoveProofRequest(BaseModel):
    x_old: int = Field(ge=0)
    y_old: int = Field(ge=0)
    salt_old: int = Field(ge=0, le=0xFFFFFFFF)
    x_new: int = Field(ge=0)
    y_new: int = Field(ge=0)
    salt_new: int = Field(ge=0, le=0xFFFFFFFF)
    session_id: int = Field(ge=0, le=0xFFFFFFFF)
    turn: int = Field(ge=0, le=0xFFFFFFFF)


class ProveResponse(BaseModel):
    circuit: str
    proof_hex: str
    public_inputs_fields: list[str]


def check_session_binding(
    layout: FieldLayout,
    fields: list[str],
    session_id: int,
    turn: int,
) -> None:
    """
    Compare the session id and turn carried by a proof with the request.

    Layouts without anti-replay fields are accepted as-is.

    Raises:
        PublicInputMismatch: When either value disagrees
    """
    if not layout.binds_session:
        logger.debug(f"{layout.kind.value} v{layout.version} carries no session binding")
        return

    got_session = field_to_u32(fields[layout.index("session_id")])
    got_turn = field_to_u32(fields[layout.index("turn")])
    if got_session != session_id or got_turn != turn:
        raise PublicInputMismatch(
            f"{layout.kind.circuit} public input mismatch: expected session={session_id} turn={turn}, "
            f"got session={got_session} turn={got_turn}",
            expected={"session_id": session_id, "turn": turn},
            actual={"session_id": got_session, "turn": got_turn},
        )


class ProverClient:
    """
    Client for the prover service.

    Usage:
        >>> async with ProverClient("http://localhost:8788") as prover:
        ...     bundle = await prover.ping_distance(PingDistanceRequest(...))
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        layout_version: int = CURRENT_LAYOUT_VERSION,
        max_attempts: int = 3,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.layout_version = layout_version
        self.max_attempts = max_attempts
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "ProverClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, circuit: str, body: BaseModel) -> ProveResponse:
        url = f"{self.base_url}/prove/{circuit}"

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(logger, "WARNING"),
            reraise=True,
        ):
            with attempt:
                try:
                    resp = await self._client.post(url, json=body.model_dump())
                except httpx.TransportError as e:
                    logger.warning(f"Prover transport error on {circuit}: {type(e).__name__}: {e}")
                    raise

        if resp.status_code >= 400:
            raise ProverRequestFailed(
                f"prover {resp.status_code}: {resp.text or resp.reason_phrase}",
                status_code=resp.status_code,
            )
        try:
            return ProveResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise MalformedProofResponse(f"unreadable {circuit} response: {e}") from e

    async def _prove(self, kind: ProofKind, body: BaseModel, session_id: int, turn: int) -> tuple[FieldLayout, ProveResponse, list[str]]:
        layout = layout_for(kind, self.layout_version)
        try:
            resp = await self._post(kind.circuit, body)
        except httpx.TransportError as e:
            raise ProverRequestFailed(f"prover unreachable for {kind.circuit}: {e}") from e

        fields = [normalize_field(f) for f in resp.public_inputs_fields]
        layout.decode(fields)
        check_session_binding(layout, fields, session_id, turn)
        logger.bind(circuit=kind.circuit, session=session_id, turn=turn).debug("Proof received")
        return layout, resp, fields

    @staticmethod
    def _proof_bytes(resp: ProveResponse) -> bytes:
        h = resp.proof_hex[2:] if resp.proof_hex.startswith("0x") else resp.proof_hex
        try:
            return bytes.fromhex(h)
        except ValueError as e:
            raise MalformedProofResponse("proof_hex is not valid hex") from e

    async def ping_distance(self, req: PingDistanceRequest) -> ProofBundle:
        layout, resp, fields = await self._prove(ProofKind.BEACON_DISTANCE, req, req.session_id, req.turn)
        named = layout.decode(fields)
        return ProofBundle(
            kind=ProofKind.BEACON_DISTANCE,
            layout_version=layout.version,
            proof=self._proof_bytes(resp),
            fields=fields,
            commitment=named["commitment"],
            distance_squared=field_to_u32(named["distance_squared"]) if "distance_squared" in named else None,
        )

    async def turn_status(self, req: TurnStatusRequest) -> ProofBundle:
        layout, resp, fields = await self._prove(ProofKind.STATUS_DISTANCE, req, req.session_id, req.turn)
        named = layout.decode(fields)
        return ProofBundle(
            kind=ProofKind.STATUS_DISTANCE,
            layout_version=layout.version,
            proof=self._proof_bytes(resp),
            fields=fields,
            commitment=named["commitment"],
            distance_squared=field_to_u32(named["distance_squared"]) if "distance_squared" in named else None,
        )

    async def move_proof(self, req: MoveProofRequest) -> ProofBundle:
        layout, resp, fields = await self._prove(ProofKind.MOVEMENT_TRANSITION, req, req.session_id, req.turn)
        named = layout.decode(fields)
        return ProofBundle(
            kind=ProofKind.MOVEMENT_TRANSITION,
            layout_version=layout.version,
            proof=self._proof_bytes(resp),
            fields=fields,
            commitment_old=named["commitment_old"],
            commitment_new=named["commitment_new"],
        )
