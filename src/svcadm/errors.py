"""Error hierarchy shared by the engine facade, adapters and orchestrator."""

from typing import List, Optional, Sequence


class SvcadmError(Exception):
    """Base error for svcadm."""
    pass


class ConfigInvalid(SvcadmError):
    """Configuration or users file rejected at load time."""

    def __init__(self, message: str, errors: Optional[Sequence[str]] = None):
        self.errors: List[str] = list(errors or [])
        if self.errors:
            message = message + ":\n" + "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(message)


class EngineError(SvcadmError):
    """Container engine failure."""
    pass


class InvalidBackend(EngineError):
    """Unsupported container backend requested."""
    pass


class EngineUnavailable(EngineError):
    """Backend socket missing or daemon unreachable."""
    pass


class BackendChangeRejected(EngineError):
    """Attempt to switch backend after one was selected."""
    pass


class ImagePullFailed(EngineError):
    """Image could not be pulled."""
    pass


class NetworkError(EngineError):
    """Network lookup or creation failed."""
    pass


class ContainerCreateFailed(EngineError):
    """Container could not be created or started."""
    pass


class ContainerNotFound(EngineError):
    """Container does not exist."""
    pass


class ContainerEnvMissing(EngineError):
    """Requested variable is absent from the container environment."""
    pass


class TransientEngineError(EngineError):
    """Engine I/O failure that a readiness loop may retry."""
    pass


class ExecFailed(EngineError):
    """Command executed in a container exited with a non-zero code."""

    def __init__(self, container: str, argv: Sequence[str], exit_code: int,
                 stderr: str = "", stdout: bytes = b""):
        self.container = container
        self.argv = list(argv)
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(
            f"command {self.argv} in container {container} exited with code {exit_code}{detail}"
        )


class ReadinessTimeout(SvcadmError):
    """Service did not become ready within its retry budget."""
    pass


class DependencyCycle(SvcadmError):
    """Service dependency graph contains a cycle."""

    def __init__(self, remaining: Sequence[str]):
        self.remaining = sorted(remaining)
        super().__init__(
            "service dependency cycle detected, no valid start order for: "
            + ", ".join(self.remaining)
        )


class UnknownService(SvcadmError):
    """No adapter is registered for the service name."""
    pass


class SkippedMissingPrereq(SvcadmError):
    """Service skipped because one of its prerequisites did not start."""

    def __init__(self, service: str, missing: Sequence[str]):
        self.service = service
        self.missing = sorted(missing)
        super().__init__(
            f"{service} skipped, prerequisites not started: {', '.join(self.missing)}"
        )


class UnsupportedTarEntry(SvcadmError):
    """Archive copied out of a container holds an entry that cannot be extracted."""
    pass
