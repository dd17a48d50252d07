"""Exception hierarchy for pagestitch."""

from pathlib import Path


class PagestitchError(Exception):
    """Base exception for pagestitch errors."""

    pass


class StructuralError(PagestitchError):
    """A document is missing, or has more than one, body boundary marker."""

    pass


class DataPathError(PagestitchError):
    """A data path could not be resolved.

    Carries the attempted path and the exact segment that failed.
    """

    def __init__(self, path: str, segment: str, reason: str = "not found"):
        self.path = path
        self.segment = segment
        self.reason = reason
        super().__init__(f"Invalid data path '{path}' at '{segment}': {reason}")


class DuplicateNameError(PagestitchError):
    """Two discovered files claim the same component name or data namespace."""

    def __init__(self, kind: str, name: str, paths: list[Path]):
        self.kind = kind
        self.name = name
        self.paths = paths
        joined = ", ".join(str(p) for p in paths)
        super().__init__(f"Duplicate {kind} '{name}': {joined}")


class CryptoError(PagestitchError):
    """Key derivation, randomness or cipher failure."""

    pass


class SiteIOError(PagestitchError):
    """A required file could not be read or written."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"{message}: {path}")


class DataFileError(PagestitchError):
    """A data file is not valid YAML."""

    pass


class CycleError(PagestitchError):
    """Components reference each other in a loop."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Component reference cycle: {' -> '.join(cycle)}")


class UnknownComponentError(PagestitchError):
    """A fragment invocation names a fragment that does not exist."""

    def __init__(self, name: str, artifact: str | None = None):
        self.name = name
        self.artifact = artifact
        where = f" in {artifact}" if artifact else ""
        super().__init__(f"Unknown component '{name}'{where}")


class RenderError(PagestitchError):
    """The templating runtime failed to parse or execute a composed template."""

    pass


class ConfigError(PagestitchError):
    """Invalid or unreadable configuration."""

    pass


class ArtifactError(PagestitchError):
    """Wraps any build error with the name of the artifact being produced."""

    def __init__(self, artifact: str, cause: Exception):
        self.artifact = artifact
        self.cause = cause
        super().__init__(f"{artifact}: {cause}")
