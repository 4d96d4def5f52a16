"""
Custom Exception Classes for the Agent Config Service

Hierarchical exception structure for error handling across services.
The `recoverable` flag separates failures that a later retry can fix
from failures that need outside reconfiguration.
"""


class AgentConfError(Exception):
    """Base exception for all agent config service errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class SettingsError(AgentConfError):
    """Local settings could not be loaded or are invalid"""

    def __init__(self, message: str):
        super().__init__(f"Settings Error: {message}", recoverable=False)


class NotReadyError(AgentConfError):
    """No snapshot has been published yet"""

    def __init__(self, message: str = "agent config infrastructure is not ready"):
        super().__init__(message, recoverable=True)


class ConfigInvalidError(AgentConfError):
    """Upstream access was permanently denied before any snapshot existed"""

    def __init__(
        self,
        message: str = "no valid elasticsearch config to fetch agent config",
    ):
        super().__init__(message, recoverable=False)


class RefreshError(AgentConfError):
    """A refresh cycle failed to produce a snapshot"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        recoverable: bool = True,
    ):
        self.status_code = status_code
        super().__init__(f"Refresh Error: {message}", recoverable)
