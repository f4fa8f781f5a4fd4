"""Exception hierarchy for provisioning failures."""


class LabError(Exception):
    """Base class for every fatal provisioning error."""

    pass


class PreflightError(LabError):
    """Raised when the host does not meet a precondition (device, network, OS)."""

    pass


class ReadinessTimeout(LabError):
    """Raised when an asynchronous external effect did not appear in time."""

    pass


class OperatorInputRequired(LabError):
    """Raised when operator input is needed but prompting is disabled."""

    pass


class CommandError(LabError):
    """Raised when an external tool exits non-zero."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str = "") -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"Command failed ({returncode}): {' '.join(cmd)}{detail}")


class TemplateSourceError(LabError):
    """Raised when configuration templates cannot be obtained."""

    pass


class TunnelIdNotFoundError(LabError):
    """Raised when no tunnel identifier can be extracted from provider output."""

    pass


class DiskLayoutError(LabError):
    """Raised when a filesystem label resolves to the wrong device."""

    pass


class AbortedByOperator(LabError):
    """Raised when the operator declines a destructive action."""

    pass
