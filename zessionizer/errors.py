"""Error taxonomy shared by the worker and main contexts."""


class ZessionizerError(Exception):
    """Base class for every recoverable failure in the index."""

    kind = "internal"


class ScanError(ZessionizerError):
    """A root or directory could not be read during discovery."""

    kind = "scan"


class StoreError(ZessionizerError):
    """The persisted store could not be read or written."""

    kind = "persistence"


class HostError(ZessionizerError):
    """The host rejected a session request or could not list sessions."""

    kind = "host"


class ConfigError(ZessionizerError):
    """A configuration value could not be parsed."""

    kind = "config"
