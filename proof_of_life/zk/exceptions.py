# ABOUTME: Exception definitions for the proof client and public-input encoding layer.
# ABOUTME: A mismatch between a proof's public fields and its request is never retried.


class PublicInputMismatch(Exception):
    """Raised when a proof's session id / turn fields disagree with the request"""

    def __init__(self, message: str, expected: dict[str, int] | None = None, actual: dict[str, int] | None = None):
        super().__init__(message)
        self.expected = expected or {}
        self.actual = actual or {}


class ProverRequestFailed(Exception):
    """Raised when the prover service is unreachable or answers with an error"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedProofResponse(Exception):
    """Raised when a prover response has the wrong shape or field widths"""

    pass


class UnknownLayout(Exception):
    """Raised when no public-field layout exists for a proof kind and version"""

    pass
