"""Exception types raised by syncthing-init."""


class SyncthingInitError(Exception):
    """Base class for all errors that end a reconciliation run."""


class ConfigError(SyncthingInitError):
    """The declared configuration is invalid or cannot be read."""


class CredentialTimeoutError(SyncthingInitError):
    """The API key did not become available within the configured bound."""


class TransportError(SyncthingInitError):
    """A control API call failed after all retries were used."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RestartTriggerError(SyncthingInitError):
    """The configuration was applied but the restart step failed."""
