# ABOUTME: Single import point for every error a caller of this package may need to handle.
# ABOUTME: Each class is defined in the layer that raises it; this module only re-exports them.

from proof_of_life.chain.exceptions import (
    AuthorizationFailure,
    ChainError,
    FatalChainError,
    NetworkCongestion,
    ProofRejected,
    ResourceLimitExceeded,
    StateDesync,
    Unconfirmed,
)
from proof_of_life.commitment.exceptions import SecretDecryptionError, SecretNotInitialized
from proof_of_life.orchestration.exceptions import MissingSecret, SessionEnded, ValidationError
from proof_of_life.zk.exceptions import (
    MalformedProofResponse,
    ProverRequestFailed,
    PublicInputMismatch,
    UnknownLayout,
)

__all__ = [
    "AuthorizationFailure",
    "ChainError",
    "FatalChainError",
    "MalformedProofResponse",
    "MissingSecret",
    "NetworkCongestion",
    "ProofRejected",
    "ProverRequestFailed",
    "PublicInputMismatch",
    "ResourceLimitExceeded",
    "SecretDecryptionError",
    "SecretNotInitialized",
    "SessionEnded",
    "StateDesync",
    "Unconfirmed",
    "UnknownLayout",
    "ValidationError",
]
