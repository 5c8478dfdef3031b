# ABOUTME: Serialized write pipeline: FIFO queue, build/simulate/sign/send/confirm attempts and classified retries.
# ABOUTME: Tracks session health so that no mutating call is made once local and remote state have diverged.

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, Field
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type

from proof_of_life.config.settings import Settings
from proof_of_life.utils.logging import log_chain_event

from .classify import TxOutcome, classify_error, to_chain_error
from .exceptions import (
    AuthorizationFailure,
    ChainError,
    LedgerError,
    NetworkCongestion,
    ResourceLimitExceeded,
    StateDesync,
)
from .transport import Invocation, LedgerTransport, SendStatus, TxResult, TxStatus

T = TypeVar("T")

RETRIABLE = (NetworkCongestion, ResourceLimitExceeded, AuthorizationFailure)


class TxQueue:
    """
    Single-writer FIFO for mutating transactions.

    Building, signing and sending happen inside the queue so two transactions
    never embed the same sequence number. A failed item does not block the
    items behind it; its error still reaches its own caller.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._pending = 0

    @property
    def pending(self) -> int:
        return self._pending

    async def enqueue(self, fn: Callable[[], Awaitable[T]]) -> T:
        self._pending += 1
        try:
            async with self._lock:
                return await fn()
        finally:
            self._pending -= 1


class RetryPolicy(BaseModel):
    """Attempt limits, backoff and resource escalation for one write"""

    max_attempts: int = Field(default=5, ge=1)
    backoff_base: float = Field(default=0.8, ge=0, description="Seconds before the first congestion retry")
    backoff_max: float = Field(default=8.0, ge=0)
    bump_factors: list[float] = Field(default_factory=lambda: [1.3, 1.8, 2.4, 3.2, 4.8], min_length=1)
    fee_floor: float = Field(default=1.4)
    max_write_bytes: int = Field(default=132096)
    max_resource_fee: int = Field(default=100_000_000)
    auth_max_attempts: int = Field(default=2, ge=1, description="Attempts allowed for an auth glitch (one retry)")
    confirm_timeout: float = Field(default=60.0)

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.write_max_attempts,
            backoff_base=settings.write_backoff_base_ms / 1000,
            backoff_max=settings.write_backoff_max_ms / 1000,
            bump_factors=settings.resource_bump_factor_list,
            fee_floor=settings.fee_bump_floor,
            max_write_bytes=settings.max_write_bytes,
            max_resource_fee=settings.max_resource_fee,
            confirm_timeout=settings.confirm_timeout_seconds,
        )

    def escalation_factor(self, resource_failures: int) -> float:
        """Multiplier for the next simulation after n consecutive resource-limit failures"""
        idx = min(max(resource_failures, 0), len(self.bump_factors) - 1)
        return self.bump_factors[idx]

    def backoff_delay(self, attempt: int) -> float:
        return min(self.backoff_base * 2 ** max(attempt - 1, 0), self.backoff_max)


class AttemptContext(BaseModel):
    attempt: int
    resource_failures: int = 0
    factor: float

    model_config = {"frozen": True}


class _RetryBook:
    """Per-call failure counters feeding tenacity's stop and wait decisions"""

    def __init__(self, policy: RetryPolicy, label: str):
        self.policy = policy
        self.label = label
        self.resource_failures = 0
        self.auth_failures = 0

    def context(self, attempt: int) -> AttemptContext:
        return AttemptContext(
            attempt=attempt,
            resource_failures=self.resource_failures,
            factor=self.policy.escalation_factor(self.resource_failures),
        )

    def failed(self, err: ChainError, classifier: Callable[[BaseException], TxOutcome]) -> ChainError:
        typed = to_chain_error(err, classifier(err)) if isinstance(err, LedgerError) else err
        if isinstance(typed, ResourceLimitExceeded):
            self.resource_failures += 1
        else:
            self.resource_failures = 0
        if isinstance(typed, AuthorizationFailure):
            self.auth_failures += 1
        return typed

    def stop(self, retry_state: RetryCallState) -> bool:
        if retry_state.attempt_number >= self.policy.max_attempts:
            return True
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, AuthorizationFailure):
            return self.auth_failures >= self.policy.auth_max_attempts
        if isinstance(exc, ResourceLimitExceeded):
            return self.resource_failures >= len(self.policy.bump_factors)
        return False

    def wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, ResourceLimitExceeded):
            return 0.0
        return self.policy.backoff_delay(retry_state.attempt_number)

    def before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.bind(operation=self.label, attempt=retry_state.attempt_number).warning(
            f"{self.label} attempt {retry_state.attempt_number}/{self.policy.max_attempts} failed "
            f"({type(exc).__name__}); retrying"
        )


async def execute_with_retry(
    operation: Callable[[AttemptContext], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str = "write",
    classifier: Callable[[BaseException], TxOutcome] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run operation until it succeeds or its failure class says to stop.

    Congestion retries with exponential backoff up to policy.max_attempts.
    Resource-limit failures re-run immediately with the next escalation factor.
    Auth glitches get a single retry. Every other ChainError is raised as its
    typed class on the first occurrence; non-chain exceptions pass through.

    Args:
        operation: Async callable receiving the attempt context
        policy: Retry limits and escalation table
        label: Name used in log lines
        classifier: Outcome classifier (defaults to classify_error)
        sleep: Sleep function (injectable for tests)

    Returns:
        The operation's result
    """
    classify = classifier or classify_error
    book = _RetryBook(policy, label)

    async for attempt in AsyncRetrying(
        stop=book.stop,
        wait=book.wait,
        retry=retry_if_exception_type(RETRIABLE),
        before_sleep=book.before_sleep,
        sleep=sleep,
        reraise=True,
    ):
        with attempt:
            ctx = book.context(attempt.retry_state.attempt_number)
            try:
                return await operation(ctx)
            except ChainError as e:
                typed = book.failed(e, classify)
                if typed is e:
                    raise
                raise typed from e

    raise RuntimeError("retry loop exited without a result")


class AttemptStage(str, Enum):
    BUILD = "build"
    SIMULATE = "simulate"
    SIGN = "sign"
    SEND = "send"
    CONFIRM = "confirm"


class SessionHealth:
    """Once desynced, a session refuses every further mutating call until restart"""

    def __init__(self, session_id: int = 0):
        self.session_id = session_id
        self.healthy = True
        self.reason: str | None = None

    def mark_desynced(self, reason: str) -> None:
        if not self.healthy:
            return
        self.healthy = False
        self.reason = reason
        logger.bind(session=self.session_id).error(
            f"Session desynchronized ({reason}); on-chain mutations disabled until restart"
        )

    def ensure_writable(self, operation: str) -> None:
        if not self.healthy:
            raise StateDesync(f"{operation} refused: session desynchronized ({self.reason})")

    def reset(self) -> None:
        self.healthy = True
        self.reason = None


class ChainWriter:
    """Submits contract invocations through the queue with classified retries"""

    def __init__(
        self,
        transport: LedgerTransport,
        policy: RetryPolicy | None = None,
        health: SessionHealth | None = None,
        queue: TxQueue | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.transport = transport
        self.policy = policy or RetryPolicy()
        self.health = health or SessionHealth()
        self.queue = queue or TxQueue()
        self._sleep = sleep

    async def submit(self, invocation: Invocation) -> TxResult:
        """
        Queue a mutating call and wait for its result.

        Raises:
            StateDesync: When the session is (or becomes) desynchronized
            ChainError: Typed failure after retries are exhausted
        """
        self.health.ensure_writable(invocation.operation)
        return await self.queue.enqueue(lambda: self._submit(invocation))

    async def _submit(self, invocation: Invocation) -> TxResult:
        self.health.ensure_writable(invocation.operation)
        session_id = int(invocation.args.get("session_id", 0))
        try:
            result = await execute_with_retry(
                lambda ctx: self._attempt(invocation, ctx),
                self.policy,
                label=invocation.operation,
                sleep=self._sleep,
            )
        except StateDesync as e:
            self.health.mark_desynced(f"{invocation.operation}: {e.message}")
            log_chain_event(invocation.operation, session_id, "desync", tx_hash=e.tx_hash, level="ERROR")
            raise
        except ChainError as e:
            log_chain_event(
                invocation.operation, session_id, "failed",
                tx_hash=e.tx_hash, level="ERROR", error=type(e).__name__,
            )
            raise

        log_chain_event(
            invocation.operation,
            session_id,
            "confirmed" if result.confirmed else "unconfirmed",
            tx_hash=result.tx_hash,
            attempt=result.attempts,
            level="INFO" if result.confirmed else "WARNING",
        )
        return result

    async def _attempt(self, invocation: Invocation, ctx: AttemptContext) -> TxResult:
        t = self.transport
        stage = AttemptStage.BUILD
        tx_hash: str | None = None
        try:
            tx = await t.build(invocation)
            stage = AttemptStage.SIMULATE
            simulation = await t.simulate(tx)
            budget = simulation.budget.escalate(
                ctx.factor,
                self.policy.fee_floor,
                self.policy.max_write_bytes,
                self.policy.max_resource_fee,
            )
            stage = AttemptStage.SIGN
            signed = await t.sign(tx, budget)
            stage = AttemptStage.SEND
            sent = await t.send(signed)
            tx_hash = sent.tx_hash
            if sent.status == SendStatus.TRY_AGAIN_LATER:
                raise LedgerError("TRY_AGAIN_LATER", tx_hash=tx_hash)
            if sent.status == SendStatus.ERROR:
                raise LedgerError(sent.error or "transaction failed during submission", tx_hash=tx_hash)
            stage = AttemptStage.CONFIRM
            confirmation = await t.confirm(tx_hash or "", self.policy.confirm_timeout)
        except LedgerError as e:
            logger.bind(operation=invocation.operation, stage=stage.value, attempt=ctx.attempt).debug(
                f"{invocation.operation} failed at {stage.value}: {e.message}"
            )
            raise

        if confirmation.status == TxStatus.SUCCESS:
            return TxResult(
                operation=invocation.operation,
                tx_hash=tx_hash or "UNKNOWN",
                attempts=ctx.attempt,
                return_value=confirmation.return_value,
            )
        if confirmation.status == TxStatus.PENDING:
            logger.bind(operation=invocation.operation, tx_hash=tx_hash).warning(
                f"{invocation.operation} accepted as PENDING; final status unknown"
            )
            return TxResult(
                operation=invocation.operation,
                tx_hash=tx_hash or "UNKNOWN",
                confirmed=False,
                attempts=ctx.attempt,
            )
        raise LedgerError(
            confirmation.error or f"transaction {confirmation.status.value}",
            tx_hash=tx_hash,
        )
