"""tanker errors - typed failures shared by the engine, store and navigation."""


class TankerError(Exception):
    """Base class for every error tanker reports to a user or a tool caller."""


class ValidationError(TankerError):
    """Malformed request data. Recoverable: re-prompt or report."""


class TransportError(TankerError):
    """DNS, connection, TLS or timeout failure on a single HTTP attempt."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class StorageError(TankerError):
    """The request database could not be read or written."""


class StateError(TankerError):
    """An operation is not allowed in the current state."""


class NotFoundError(StateError):
    def __init__(self, name: str):
        super().__init__(f"request {name!r} not found")
        self.name = name


class PromptAborted(TankerError):
    """The user interrupted an interactive prompt (Ctrl-C / EOF).

    eof is set when input is closed, so no further prompt can succeed.
    """

    def __init__(self, message: str = "interrupt", eof: bool = False):
        super().__init__(message)
        self.eof = eof
