# ABOUTME: Shared pytest fixtures for all test modules (unit, integration, contract).
# ABOUTME: Provides sessions with a placed pursuer, an in-memory ledger transport and a mock prover service.

import json
import random
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from proof_of_life.chain.backend import ChainBackend
from proof_of_life.chain.exceptions import LedgerError
from proof_of_life.chain.log import ChainLog, fake_tx_hash
from proof_of_life.chain.pipeline import ChainWriter, RetryPolicy, SessionHealth
from proof_of_life.chain.transport import (
    Confirmation,
    Invocation,
    ResourceBudget,
    SendResponse,
    SendStatus,
    Simulation,
    TxStatus,
)
from proof_of_life.commitment.store import commit
from proof_of_life.config.settings import GameRules, Settings
from proof_of_life.models.session import Coord, SessionState
from proof_of_life.orchestration.game_session import GameSession
from proof_of_life.zk.encoding import u32_to_field
from proof_of_life.zk.prover_client import ProverClient

DISPATCHER_ADDR = "G" + "A" * 55
EVADER_ADDR = "G" + "B" * 55


# --- Helper Functions ---

def place_pursuer(session: GameSession, pos: Coord) -> None:
    """Move the stored pursuer to pos without touching the public state"""
    secret = session.require_secret()
    session.store.move_to(secret, pos)


def make_prover_handler(
    turn_offset: int = 0,
    session_override: int | None = None,
    status_code: int = 200,
    calls: list[tuple[str, dict[str, Any]]] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """Build a MockTransport handler that answers /prove/{circuit} with v3 public fields"""

    def handler(request: httpx.Request) -> httpx.Response:
        circuit = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content)
        if calls is not None:
            calls.append((circuit, body))
        if status_code >= 400:
            return httpx.Response(status_code, text="prover exploded")

        sid = u32_to_field(body["session_id"] if session_override is None else session_override)
        turn = u32_to_field(body["turn"] + turn_offset)
        if circuit == "ping_distance":
            d2 = (body["x"] - body["tower_x"]) ** 2 + (body["y"] - body["tower_y"]) ** 2
            fields = [
                commit(body["x"], body["y"], body["salt"]),
                u32_to_field(body["tower_x"]),
                u32_to_field(body["tower_y"]),
                sid,
                turn,
                u32_to_field(d2),
            ]
        elif circuit == "turn_status":
            d2 = (body["x"] - body["cx"]) ** 2 + (body["y"] - body["cy"]) ** 2
            fields = [
                commit(body["x"], body["y"], body["salt"]),
                u32_to_field(body["cx"]),
                u32_to_field(body["cy"]),
                sid,
                turn,
                u32_to_field(d2),
            ]
        elif circuit == "move_proof":
            fields = [
                commit(body["x_old"], body["y_old"], body["salt_old"]),
                commit(body["x_new"], body["y_new"], body["salt_new"]),
                sid,
                turn,
            ]
        else:
            return httpx.Response(404, text=f"unknown circuit {circuit}")

        return httpx.Response(
            200,
            json={"circuit": circuit, "proof_hex": "0x" + "ab" * 16, "public_inputs_fields": fields},
        )

    return handler


def make_prover(**handler_kwargs: Any) -> ProverClient:
    transport = httpx.MockTransport(make_prover_handler(**handler_kwargs))
    return ProverClient("http://prover.test", client=httpx.AsyncClient(transport=transport))


class FakeLedger:
    """
    In-memory LedgerTransport emulating the game contract's turn bookkeeping.

    Public ward fields are copied from `mirror()` on every write, the way the
    real contract would compute them from the same directive. Scripted
    failures are consumed per operation at the send stage.
    """

    def __init__(self, mirror: Callable[[], SessionState] | None = None):
        self.mirror = mirror
        self.sessions: dict[int, dict[str, Any]] = {}
        self.failures: dict[str, list[str]] = {}
        self.simulate_failures: dict[str, list[str]] = {}
        self.sent: list[Invocation] = []
        self.attempted: list[str] = []
        self.budgets: list[ResourceBudget] = []
        self.verifiers = {"ping": "CPINGVERIFIER", "turn_status": "CSTATUSVERIFIER", "move": "CMOVEVERIFIER"}
        self.towers: dict[str, int] | None = {"n_x": 5, "n_y": 0, "e_x": 9, "e_y": 5, "s_x": 5, "s_y": 9, "w_x": 0, "w_y": 5}
        self.freeze_phase = False
        self.confirm_status = TxStatus.SUCCESS
        self.base_budget = ResourceBudget(
            instructions=1_000_000, read_bytes=2_000, write_bytes=1_000, resource_fee=50_000,
        )
        self._n = 0

    def fail(self, operation: str, *errors: str) -> None:
        self.failures.setdefault(operation, []).extend(errors)

    @property
    def operations(self) -> list[str]:
        return [i.operation for i in self.sent]

    async def build(self, invocation: Invocation) -> Invocation:
        self.attempted.append(invocation.operation)
        return invocation

    async def simulate(self, tx: Invocation) -> Simulation:
        queued = self.simulate_failures.get(tx.operation)
        if queued:
            raise LedgerError(queued.pop(0))
        return Simulation(budget=self.base_budget)

    async def sign(self, tx: Invocation, budget: ResourceBudget) -> Invocation:
        self.budgets.append(budget)
        return tx

    async def send(self, signed: Invocation) -> SendResponse:
        self._n += 1
        tx_hash = fake_tx_hash(f"{signed.operation}:{self._n}")
        queued = self.failures.get(signed.operation)
        if queued:
            err = queued.pop(0)
            if err == "TRY_AGAIN_LATER":
                return SendResponse(status=SendStatus.TRY_AGAIN_LATER, tx_hash=tx_hash)
            return SendResponse(status=SendStatus.ERROR, tx_hash=tx_hash, error=err)
        self._apply(signed)
        self.sent.append(signed)
        return SendResponse(status=SendStatus.PENDING, tx_hash=tx_hash)

    async def confirm(self, tx_hash: str, timeout: float) -> Confirmation:
        return Confirmation(status=self.confirm_status)

    async def read(self, invocation: Invocation) -> Any:
        op = invocation.operation
        if op == "get_session":
            record = self.sessions.get(invocation.args["session_id"])
            if record is None:
                raise LedgerError("HostError: Error(Contract, #1)")
            return {"tag": "Ok", "values": [dict(record)]}
        if op == "get_towers":
            if self.towers is None:
                raise LedgerError("get_towers: Error(WasmVm, MissingValue)")
            return dict(self.towers)
        if op == "get_verifiers":
            return dict(self.verifiers)
        if op == "get_session_key_scope":
            return {"tag": "None", "values": None}
        raise LedgerError(f"unknown read {op}")

    def _mirror_into(self, record: dict[str, Any]) -> None:
        if self.mirror is None:
            return
        s = self.mirror()
        record.update(
            ward_x=s.ward_x,
            ward_y=s.ward_y,
            ward_hidden=s.ward_hidden,
            hide_streak=s.hide_streak,
            alpha=s.alpha,
            ended=s.ended,
        )

    def _apply(self, inv: Invocation) -> None:
        args = inv.args
        op = inv.operation
        if op in ("start_game", "start_game_with_session_key"):
            alpha_max = args.get("alpha_max", 5)
            self.sessions[args["session_id"]] = {
                "session_id": args["session_id"],
                "dispatcher": args["dispatcher"],
                "evader": args["evader"],
                "commitment": None,
                "battery": 100,
                "ping_cost": 20,
                "recharge_amount": 10,
                "turn": 0,
                "phase": 0,
                "ended": False,
                "moved_this_turn": False,
                "alpha": alpha_max,
                "alpha_max": alpha_max,
                "ward_x": 5,
                "ward_y": 5,
                "ward_hidden": False,
                "hide_streak": 0,
                "pending_beacon": None,
                "insecure_mode": False,
            }
            return

        record = self.sessions.get(args.get("session_id"))
        if record is None:
            return
        self._mirror_into(record)

        if op == "set_insecure_mode":
            record["insecure_mode"] = args["enabled"]
        elif op == "dispatch":
            record["battery"] -= record["ping_cost"]
            if not self.freeze_phase:
                record["phase"] = 1
                record["pending_beacon"] = args["tower_id"]
        elif op == "recharge_with_command":
            record["battery"] = min(100, record["battery"] + record["recharge_amount"])
            if not self.freeze_phase:
                record["phase"] = 1
        elif op == "submit_ping_proof":
            record["commitment"] = args["public_inputs"][0]
        elif op in ("submit_move_proof", "submit_multi_move_proof"):
            record["moved_this_turn"] = True
        elif op in ("submit_turn_status_proof", "evader_tick"):
            if not self.freeze_phase:
                record["turn"] += 1
                record["phase"] = 0
                record["pending_beacon"] = None
                record["moved_this_turn"] = False


# --- Rules and Session Fixtures ---

@pytest.fixture
def rules() -> GameRules:
    """Default rule set (battery 100, ping 20, recharge 10, extraction at turn 10)"""
    return GameRules()


@pytest.fixture
def session(rules: GameRules) -> GameSession:
    """Armed single-player session, ward at (5,5), pursuer placed in the garden corner"""
    s = GameSession.start(7, DISPATCHER_ADDR, EVADER_ADDR, rules, rng=random.Random(1))
    place_pursuer(s, Coord(x=9, y=1))
    s.arm_commitment()
    return s


@pytest.fixture
def test_settings() -> Settings:
    """Fast polling settings for on-chain flows"""
    return Settings(
        poll_interval_seconds=0.0,
        poll_max_attempts=3,
        action_lock_watchdog_seconds=5.0,
        dev_mode=False,
    )


# --- Ledger Fixtures ---

@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the write pipeline"""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], Any]:
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def backend(ledger: FakeLedger, fake_sleep: Callable[[float], Any]) -> ChainBackend:
    """Contract client over the fake ledger with sleeps recorded instead of awaited"""
    writer = ChainWriter(ledger, RetryPolicy(), health=SessionHealth(7), sleep=fake_sleep)
    return ChainBackend(ledger, DISPATCHER_ADDR, writer=writer, log=ChainLog(limit=50))


# --- Prover Fixtures ---

@pytest.fixture
def prover_calls() -> list[tuple[str, dict[str, Any]]]:
    return []


@pytest.fixture
def prover(prover_calls: list[tuple[str, dict[str, Any]]]) -> ProverClient:
    """Prover client answering from an in-process mock service"""
    return make_prover(calls=prover_calls)
