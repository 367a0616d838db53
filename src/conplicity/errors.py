"""Domain errors for Conplicity."""


class ConplicityError(RuntimeError):
    """Base class for errors raised by Conplicity."""


class ConnectivityError(ConplicityError):
    """Raised when the container runtime or a remote endpoint cannot be reached."""


class ProtocolMismatchError(ConplicityError):
    """Raised when a reachable endpoint answers outside the expected contract."""


class RuntimeProvisioningError(ConplicityError):
    """Raised when a backup container cannot be created or started."""


class ObservabilityError(ConplicityError):
    """Raised when logs or metrics cannot be collected. Never fatal to a run."""


class CommandFailedError(ConplicityError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, message: str, returncode: int, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class CommandTimeoutError(ConnectivityError):
    """Raised when an external command outlives the timeout it was given."""
