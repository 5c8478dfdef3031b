# ABOUTME: Game contract client exposing every entrypoint through the serialized write pipeline.
# ABOUTME: Handles delegated session keys, multi-move batch splitting and tower/verifier reads.

from enum import Enum, IntFlag
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from proof_of_life.lobby.codes import is_account_address
from proof_of_life.models.session import Beacon, Coord, Directive
from proof_of_life.orchestration.exceptions import ValidationError
from proof_of_life.world.beacons import resolve_beacons
from proof_of_life.zk.encoding import ProofBundle, ProofKind

from .classify import is_oversized_batch
from .codec import RemoteSession, directive_to_command, hex_to_buf32, parse_remote_session
from .exceptions import AuthorizationFailure, ChainError, FatalChainError
from .log import ChainLog
from .pipeline import ChainWriter
from .transport import Invocation, LedgerTransport, TxResult


class SessionPermission(IntFlag):
    """Bits of a delegated session key's allow-mask"""
    DISPATCH = 1 << 0
    RECHARGE = 1 << 1
    COMMIT_LOCATION = 1 << 2
    SUBMIT_PING_PROOF = 1 << 3
    SUBMIT_MOVE_PROOF = 1 << 4
    SUBMIT_TURN_STATUS_PROOF = 1 << 5
    EVADER_TICK = 1 << 6
    LOCK_SECURE_MODE = 1 << 7


DISPATCHER_ALLOW_MASK = SessionPermission.DISPATCH | SessionPermission.RECHARGE | SessionPermission.LOCK_SECURE_MODE
EVADER_ALLOW_MASK = (
    SessionPermission.COMMIT_LOCATION
    | SessionPermission.SUBMIT_PING_PROOF
    | SessionPermission.SUBMIT_MOVE_PROOF
    | SessionPermission.SUBMIT_TURN_STATUS_PROOF
    | SessionPermission.EVADER_TICK
)


class ChainRole(str, Enum):
    DISPATCHER = "Dispatcher"
    EVADER = "Evader"


class SessionKeyParams(BaseModel):
    delegate: str
    ttl_ledgers: int = Field(ge=0, le=0xFFFFFFFF)
    max_writes: int = Field(ge=0, le=0xFFFFFFFF)
    dispatcher_allow_mask: int = Field(default=int(DISPATCHER_ALLOW_MASK), ge=0)
    evader_allow_mask: int = Field(default=int(EVADER_ALLOW_MASK), ge=0)

    model_config = {"frozen": True}


class SessionKeyScope(BaseModel):
    """Delegated authority recorded by the contract for one owner and role"""

    owner: str
    delegate: str
    session_id: int
    role: str
    expires_ledger: int
    max_writes: int
    writes_used: int
    allow_mask: int

    model_config = {"frozen": True, "extra": "ignore"}

    @property
    def remaining_writes(self) -> int:
        return max(0, self.max_writes - self.writes_used)

    def allows(self, permission: SessionPermission) -> bool:
        return bool(self.allow_mask & permission)


class Verifiers(BaseModel):
    ping: str
    turn_status: str
    move: str

    model_config = {"frozen": True}


def _proof_args(bundle: ProofBundle) -> dict[str, Any]:
    return {
        "proof": bundle.proof,
        "public_inputs": [hex_to_buf32(f) for f in bundle.fields],
    }


def _unwrap_option(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, dict):
        tag = value.get("tag")
        if tag == "Some" and value.get("values"):
            return value["values"][0]
        if tag == "None":
            return None
        if tag == "Ok" and value.get("values"):
            return _unwrap_option(value["values"][0])
        if tag == "Err":
            raise FatalChainError(f"on-chain error: {value.get('values')!r}")
    return value


class ChainBackend:
    """
    Client for the game contract.

    Writes go through a ChainWriter (FIFO queue, retries, desync guard) and are
    signed as `acting_as`: the delegated session key when one is active, the
    owner account otherwise. An authorization failure while delegated drops
    the session key for the rest of the run.
    """

    def __init__(
        self,
        transport: LedgerTransport,
        account: str,
        writer: ChainWriter | None = None,
        log: ChainLog | None = None,
    ):
        self.transport = transport
        self.account = account
        self.writer = writer or ChainWriter(transport)
        self.log = log or ChainLog()
        self.delegate: str | None = None

    @property
    def acting_as(self) -> str:
        return self.delegate or self.account

    def use_session_key(self, delegate: str | None) -> None:
        self.delegate = delegate

    async def _write(self, operation: str, **args: Any) -> TxResult:
        try:
            result = await self.writer.submit(Invocation(operation=operation, args=args))
        except AuthorizationFailure:
            if self.delegate is not None:
                self.log.warn(f"ONCHAIN: session-key authorization failed during {operation}; delegated mode disabled")
                self.delegate = None
            raise
        except ChainError as e:
            self.log.error(f"TX {e.tx_hash or 'UNKNOWN'} failed {operation}: {type(e).__name__}")
            raise
        if result.confirmed:
            self.log.info(f"TX {result.tx_hash} ok {operation}")
        else:
            self.log.warn(f"TX {result.tx_hash} {operation} submitted; final status unknown")
        return result

    async def _read(self, operation: str, **args: Any) -> Any:
        return await self.transport.read(Invocation(operation=operation, args=args))

    @staticmethod
    def _check_players(dispatcher: str, evader: str) -> None:
        if not is_account_address(dispatcher):
            raise ValidationError(f"Invalid dispatcher address: {dispatcher!r}")
        if not is_account_address(evader):
            raise ValidationError(f"Invalid evader address: {evader!r}")

    # --- Session lifecycle -------------------------------------------------

    async def start_game(
        self,
        session_id: int,
        dispatcher: str,
        evader: str,
        alpha_max: int = 5,
        strong_radius_sq: int = 4,
    ) -> TxResult:
        self._check_players(dispatcher, evader)
        return await self._write(
            "start_game",
            session_id=session_id,
            dispatcher=dispatcher,
            evader=evader,
            alpha_max=alpha_max,
            strong_radius_sq=strong_radius_sq,
        )

    async def start_game_with_session_key(
        self,
        session_id: int,
        dispatcher: str,
        evader: str,
        params: SessionKeyParams,
        insecure_mode: bool = False,
    ) -> TxResult:
        """Start a game and authorize a delegate in one transaction"""
        self._check_players(dispatcher, evader)
        result = await self._write(
            "start_game_with_session_key",
            session_id=session_id,
            dispatcher=dispatcher,
            evader=evader,
            sk_params=params.model_dump(),
        )
        if insecure_mode:
            await self.set_insecure_mode(session_id, True)
        return result

    async def set_insecure_mode(self, session_id: int, enabled: bool) -> TxResult:
        return await self._write("set_insecure_mode", session_id=session_id, enabled=enabled)

    async def lock_secure_mode(self, session_id: int) -> TxResult:
        return await self._write("lock_secure_mode", session_id=session_id, dispatcher=self.acting_as)

    # --- Dispatcher --------------------------------------------------------

    async def dispatch(self, session_id: int, beacon: Beacon, directive: Directive) -> TxResult:
        """Ping a beacon and command the ward in one transaction"""
        return await self._write(
            "dispatch",
            session_id=session_id,
            dispatcher=self.acting_as,
            tower_id=beacon.index,
            command=directive_to_command(directive),
        )

    async def dispatcher_command(self, session_id: int, directive: Directive) -> TxResult:
        return await self._write(
            "dispatcher_command",
            session_id=session_id,
            dispatcher=self.acting_as,
            command=directive_to_command(directive),
        )

    async def request_ping(self, session_id: int, beacon: Beacon) -> TxResult:
        return await self._write(
            "request_ping",
            session_id=session_id,
            dispatcher=self.acting_as,
            tower_id=beacon.index,
        )

    async def recharge(self, session_id: int) -> TxResult:
        return await self._write("recharge", session_id=session_id, dispatcher=self.acting_as)

    async def recharge_with_command(self, session_id: int, directive: Directive) -> TxResult:
        return await self._write(
            "recharge_with_command",
            session_id=session_id,
            dispatcher=self.acting_as,
            command=directive_to_command(directive),
        )

    # --- Evader ------------------------------------------------------------

    async def commit_location(self, session_id: int, commitment: str) -> TxResult:
        return await self._write(
            "commit_location",
            session_id=session_id,
            evader=self.acting_as,
            commitment=hex_to_buf32(commitment),
        )

    async def submit_ping_proof(self, session_id: int, beacon: Beacon, bundle: ProofBundle) -> TxResult:
        if bundle.kind != ProofKind.BEACON_DISTANCE or bundle.distance_squared is None:
            raise ValidationError("submit_ping_proof needs a beacon-distance proof with its distance")
        return await self._write(
            "submit_ping_proof",
            session_id=session_id,
            evader=self.acting_as,
            tower_id=beacon.index,
            d2=bundle.distance_squared,
            **_proof_args(bundle),
        )

    async def submit_move_proof(self, session_id: int, bundle: ProofBundle) -> TxResult:
        if bundle.kind != ProofKind.MOVEMENT_TRANSITION or bundle.commitment_new is None:
            raise ValidationError("submit_move_proof needs a movement-transition proof")
        return await self._write(
            "submit_move_proof",
            session_id=session_id,
            evader=self.acting_as,
            new_commitment=hex_to_buf32(bundle.commitment_new),
            **_proof_args(bundle),
        )

    async def submit_multi_move_proof(self, session_id: int, bundles: list[ProofBundle]) -> TxResult:
        """
        Submit chained movement proofs in one transaction.

        A batch that exceeds the simulation budget is split in half and each
        half submitted recursively, in order.
        """
        if not bundles:
            raise ValidationError("submit_multi_move_proof needs at least one proof")
        for b in bundles:
            if b.kind != ProofKind.MOVEMENT_TRANSITION or b.commitment_new is None:
                raise ValidationError("submit_multi_move_proof accepts movement-transition proofs only")

        entries = [
            {"new_commitment": hex_to_buf32(b.commitment_new), **_proof_args(b)}
            for b in bundles
        ]
        try:
            return await self._write(
                "submit_multi_move_proof",
                session_id=session_id,
                evader=self.acting_as,
                entries=entries,
            )
        except ChainError as e:
            if len(bundles) < 2 or not is_oversized_batch(e):
                raise
            mid = (len(bundles) + 1) // 2
            logger.warning(f"Move batch of {len(bundles)} exceeded budget; splitting {mid}/{len(bundles) - mid}")
            self.log.warn(f"ONCHAIN: move batch too large ({len(bundles)} steps); splitting")
            await self.submit_multi_move_proof(session_id, bundles[:mid])
            return await self.submit_multi_move_proof(session_id, bundles[mid:])

    async def submit_turn_status_proof(self, session_id: int, bundle: ProofBundle) -> TxResult:
        if bundle.kind != ProofKind.STATUS_DISTANCE or bundle.distance_squared is None:
            raise ValidationError("submit_turn_status_proof needs a status-distance proof with its distance")
        return await self._write(
            "submit_turn_status_proof",
            session_id=session_id,
            evader=self.acting_as,
            d2_ward=bundle.distance_squared,
            **_proof_args(bundle),
        )

    async def evader_tick(self, session_id: int, d2_ward: int = 0) -> TxResult:
        """Advance turn and phase without a status proof (insecure sessions, or after verified moves)"""
        return await self._write("evader_tick", session_id=session_id, evader=self.acting_as, d2_ward=d2_ward)

    # --- Admin and delegation ---------------------------------------------

    async def set_verifiers(self, ping: str, turn_status: str, move: str) -> TxResult:
        return await self._write("set_verifiers", ping=ping, turn_status=turn_status, move=move)

    async def get_verifiers(self) -> Verifiers:
        raw = await self._read("get_verifiers")
        if isinstance(raw, dict):
            return Verifiers.model_validate(raw)
        ping, turn_status, move = raw
        return Verifiers(ping=ping, turn_status=turn_status, move=move)

    async def authorize_session_key(self, owner: str, session_id: int, params: SessionKeyParams) -> TxResult:
        return await self._write(
            "authorize_session_key",
            owner=owner,
            session_id=session_id,
            **params.model_dump(),
        )

    async def get_session_key_scope(self, owner: str, session_id: int, role: ChainRole) -> SessionKeyScope | None:
        raw = _unwrap_option(await self._read(
            "get_session_key_scope", owner=owner, session_id=session_id, role=role.value,
        ))
        return None if raw is None else SessionKeyScope.model_validate(raw)

    async def revoke_session_key(self, owner: str, session_id: int, role: ChainRole) -> TxResult:
        result = await self._write(
            "revoke_session_key",
            owner=owner,
            session_id=session_id,
            role={"tag": role.value, "values": None},
        )
        if owner == self.account:
            self.delegate = None
        return result

    # --- Reads ---------------------------------------------------------------

    async def get_session(self, session_id: int) -> RemoteSession:
        return parse_remote_session(await self._read("get_session", session_id=session_id))

    async def get_towers(self) -> dict[Beacon, Coord]:
        """Beacon coordinates from the contract, defaults when unavailable"""
        try:
            raw = await self._read("get_towers")
        except ChainError as e:
            logger.warning(f"get_towers unavailable: {e}")
            self.log.warn("ONCHAIN: get_towers unavailable; using contract default towers")
            return resolve_beacons(None)
        beacons = resolve_beacons(raw if isinstance(raw, dict) else None)
        self.log.info(
            "TOWERS " + " ".join(f"{b.value}=({c.x},{c.y})" for b, c in beacons.items())
        )
        return beacons
