# ABOUTME: Exception definitions for the ledger submission pipeline.
# ABOUTME: Each class matches one outcome of a classified write attempt and carries the contract code and tx hash.


class ChainError(Exception):
    """Base class for ledger pipeline failures"""

    def __init__(self, message: str, contract_code: int | None = None, tx_hash: str | None = None):
        super().__init__(message)
        self.message = message
        self.contract_code = contract_code
        self.tx_hash = tx_hash


class LedgerError(ChainError):
    """Raised by a ledger transport with the raw error text from the network"""
    pass


class NetworkCongestion(ChainError):
    """Raised when the network asks to try again later or the sequence number raced"""
    pass


class ResourceLimitExceeded(ChainError):
    """Raised when a transaction ran over its simulated resource budget or fee"""
    pass


class AuthorizationFailure(ChainError):
    """Raised when transaction or delegated session key authorization is rejected"""
    pass


class ProofRejected(ChainError):
    """Raised when the on-chain verifier rejects a proof"""
    pass


class StateDesync(ChainError):
    """Raised when local and remote session state have diverged; mutation is disabled"""
    pass


class Unconfirmed(ChainError):
    """Raised when a confirmed result is required but the final status is unknown"""
    pass


class FatalChainError(ChainError):
    """Raised for any other non-retriable ledger failure"""
    pass
