# ABOUTME: Maps raw ledger failures to pipeline outcomes and typed chain exceptions.
# ABOUTME: Matching is done on the error text the network returns, plus the contract error code.

import re
from enum import Enum

from .exceptions import (
    AuthorizationFailure,
    ChainError,
    FatalChainError,
    NetworkCongestion,
    ProofRejected,
    ResourceLimitExceeded,
    StateDesync,
)


class TxOutcome(str, Enum):
    SUCCESS = "success"
    CONGESTION = "retriable-congestion"
    RESOURCE_LIMIT = "retriable-resource-limit"
    AUTH_GLITCH = "retriable-auth-glitch"
    DESYNC = "desync"
    PROOF_REJECTED = "proof-rejected"
    FATAL = "fatal"


class ContractCode:
    """Contract error numbers the client reacts to"""
    SESSION_NOT_FOUND = 1
    GAME_ALREADY_ENDED = 2
    COMMITMENT_NOT_SET = 3
    NOT_DISPATCHER_TURN = 6
    NOT_EVADER_TURN = 7
    PENDING_PING_EXISTS = 10
    UNEXPECTED_TOWER = 12
    PROOF_SESSION_MISMATCH = 18
    PROOF_TURN_MISMATCH = 19
    COMMITMENT_MISMATCH = 20
    INVALID_PROOF = 22
    EVADER_MUST_MOVE = 26


DESYNC_CODES = frozenset({6, 10, 12, 18, 19, 20})
SESSION_KEY_CODES = frozenset(range(28, 33))

_CONTRACT_CODE = re.compile(r"Error\(Contract,\s*#(\d+)\)", re.IGNORECASE)

_CONGESTION = (
    re.compile(r"TRY_AGAIN_LATER", re.IGNORECASE),
    re.compile(r"txBadSeq", re.IGNORECASE),
)
_RESOURCE_LIMIT = (
    re.compile(r"ResourceLimitExceeded", re.IGNORECASE),
    re.compile(r"resource_limit_exceeded", re.IGNORECASE),
    re.compile(r"scecExceededLimit", re.IGNORECASE),
    re.compile(r"txSorobanInvalid", re.IGNORECASE),
    re.compile(r"resourceFee", re.IGNORECASE),
    re.compile(r"resource fee", re.IGNORECASE),
    re.compile(r"tx_insufficient_fee"),
)
_SIM_BUDGET = re.compile(r"Error\(Budget,\s*ExceededLimit\)", re.IGNORECASE)
_MALFORMED = re.compile(r"txMalformed", re.IGNORECASE)


def _text(err: BaseException | str) -> str:
    return err if isinstance(err, str) else str(err)


def contract_code(err: BaseException | str) -> int | None:
    """Extract the contract error number from an error, if any"""
    if isinstance(err, ChainError) and err.contract_code is not None:
        return err.contract_code
    msg = _text(err)
    m = _CONTRACT_CODE.search(msg)
    return int(m.group(1)) if m else None


def has_contract_code(err: BaseException | str, code: int) -> bool:
    return contract_code(err) == code


def is_desync_error(err: BaseException | str) -> bool:
    return contract_code(err) in DESYNC_CODES


def is_session_key_error(err: BaseException | str) -> bool:
    return contract_code(err) in SESSION_KEY_CODES


def is_oversized_batch(err: BaseException | str) -> bool:
    """True when a batched submission blew the simulation budget or produced a malformed tx"""
    msg = _text(err)
    if _SIM_BUDGET.search(msg) or _MALFORMED.search(msg):
        return True
    return "ExceededLimit" in msg and "simulation failed" in msg.lower()


def classify_error(err: BaseException | str) -> TxOutcome:
    """Classify a failed write attempt"""
    msg = _text(err)
    code = contract_code(err)

    if any(p.search(msg) for p in _CONGESTION) or code == ContractCode.SESSION_NOT_FOUND:
        return TxOutcome.CONGESTION
    if any(p.search(msg) for p in _RESOURCE_LIMIT):
        return TxOutcome.RESOURCE_LIMIT
    if re.search(r"txBadAuth", msg, re.IGNORECASE) or code in SESSION_KEY_CODES:
        return TxOutcome.AUTH_GLITCH
    if code == ContractCode.INVALID_PROOF or "pi_len" in msg:
        return TxOutcome.PROOF_REJECTED
    if code in DESYNC_CODES:
        return TxOutcome.DESYNC
    return TxOutcome.FATAL


_EXCEPTIONS: dict[TxOutcome, type[ChainError]] = {
    TxOutcome.CONGESTION: NetworkCongestion,
    TxOutcome.RESOURCE_LIMIT: ResourceLimitExceeded,
    TxOutcome.AUTH_GLITCH: AuthorizationFailure,
    TxOutcome.PROOF_REJECTED: ProofRejected,
    TxOutcome.DESYNC: StateDesync,
    TxOutcome.FATAL: FatalChainError,
}


def to_chain_error(err: BaseException, outcome: TxOutcome | None = None) -> ChainError:
    """Wrap a raw failure in the exception class of its outcome"""
    outcome = outcome or classify_error(err)
    if outcome == TxOutcome.SUCCESS:
        raise ValueError("a successful outcome has no exception")
    tx_hash = err.tx_hash if isinstance(err, ChainError) else None
    cls = _EXCEPTIONS[outcome]
    if isinstance(err, cls):
        return err
    return cls(_text(err), contract_code=contract_code(err), tx_hash=tx_hash)
