# ABOUTME: Exception definitions for orchestration layer errors.
# ABOUTME: Defines error types raised by the session reducer's controller and the turn runner.


class ValidationError(Exception):
    """Raised when a local precondition fails; never reaches the network"""

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.stage = stage


class SessionEnded(Exception):
    """Raised when an action is attempted on a terminal session"""

    pass


class MissingSecret(Exception):
    """Raised when an evader operation needs the secret but none is armed"""

    pass
