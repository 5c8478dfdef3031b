"""Ledger client: write pipeline, contract entrypoints and turn mirroring"""

from .backend import (
    ChainBackend,
    ChainRole,
    SessionKeyParams,
    SessionKeyScope,
    SessionPermission,
    Verifiers,
)
from .classify import (
    ContractCode,
    TxOutcome,
    classify_error,
    contract_code,
    is_desync_error,
    is_oversized_batch,
    to_chain_error,
)
from .codec import (
    RemoteSession,
    directive_to_command,
    merge_public_fields,
    normalize_phase,
    parse_remote_session,
    public_diff,
)
from .exceptions import (
    AuthorizationFailure,
    ChainError,
    FatalChainError,
    LedgerError,
    NetworkCongestion,
    ProofRejected,
    ResourceLimitExceeded,
    StateDesync,
    Unconfirmed,
)
from .log import ChainLog, ChainLogEntry, fake_tx_hash, format_line
from .pipeline import ChainWriter, RetryPolicy, SessionHealth, TxQueue, execute_with_retry
from .sync import OnchainTurnRunner, TurnSync
from .transport import (
    Confirmation,
    Invocation,
    LedgerTransport,
    ResourceBudget,
    SendResponse,
    SendStatus,
    Simulation,
    TxResult,
    TxStatus,
)

__all__ = [
    "AuthorizationFailure",
    "ChainBackend",
    "ChainError",
    "ChainLog",
    "ChainLogEntry",
    "ChainRole",
    "ChainWriter",
    "Confirmation",
    "ContractCode",
    "FatalChainError",
    "Invocation",
    "LedgerError",
    "LedgerTransport",
    "NetworkCongestion",
    "OnchainTurnRunner",
    "ProofRejected",
    "RemoteSession",
    "ResourceBudget",
    "ResourceLimitExceeded",
    "RetryPolicy",
    "SendResponse",
    "SendStatus",
    "SessionHealth",
    "SessionKeyParams",
    "SessionKeyScope",
    "SessionPermission",
    "Simulation",
    "StateDesync",
    "TurnSync",
    "TxOutcome",
    "TxQueue",
    "TxResult",
    "TxStatus",
    "Unconfirmed",
    "Verifiers",
    "classify_error",
    "contract_code",
    "directive_to_command",
    "execute_with_retry",
    "fake_tx_hash",
    "format_line",
    "is_desync_error",
    "is_oversized_batch",
    "merge_public_fields",
    "normalize_phase",
    "parse_remote_session",
    "public_diff",
    "to_chain_error",
]
