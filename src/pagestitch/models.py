"""Core data types for a pagestitch build.

A Site is assembled from scratch on every build and owned by the driver for
the duration of that build. Components and pages are mutated in place by the
composer; nothing here survives between builds.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from .errors import DataPathError
from .paths import output_depth


def normalize_data_path(text: str) -> str:
    """Normalize a dot path so it always begins with '.'.

    An empty path addresses the root of the data tree.
    """
    text = text.strip()
    if not text:
        return "."
    if not text.startswith("."):
        return "." + text
    return text


def split_data_path(path: str) -> list[str]:
    """Split a dot path into its non-empty segments."""
    return [part for part in path.split(".") if part]


class DataContext:
    """Namespaced data tree addressed by dot paths.

    Only mapping nodes are traversable: there is no sequence indexing, and a
    scalar or sequence met before the last segment is a lookup failure.
    """

    def __init__(self, data: dict[str, Any] | None = None):
        self._data: dict[str, Any] = data if data is not None else {}

    def get(self, path: str) -> Any:
        """Resolve a dot path.

        Raises:
            DataPathError: Naming the segment that could not be traversed.
        """
        current: Any = self._data
        for segment in split_data_path(path):
            if not isinstance(current, Mapping):
                raise DataPathError(path, segment, "parent is not a mapping")
            if segment not in current:
                raise DataPathError(path, segment)
            current = current[segment]
        return current

    def set(self, path: str, value: Any) -> None:
        """Store a value at a dot path, creating intermediate mappings."""
        segments = split_data_path(path)
        if not segments:
            if not isinstance(value, dict):
                raise DataPathError(path, ".", "root must be a mapping")
            self._data = value
            return

        current = self._data
        for segment in segments[:-1]:
            if segment not in current:
                current[segment] = {}
            child = current[segment]
            if not isinstance(child, dict):
                raise DataPathError(path, segment, "parent is not a mapping")
            current = child
        current[segments[-1]] = value

    def as_dict(self) -> dict[str, Any]:
        return self._data

    def __contains__(self, namespace: str) -> bool:
        return namespace in self._data

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class Component:
    """A reusable fragment selected by a custom tag named after its file."""

    name: str
    source_path: Path
    source: str
    raw_body: str = ""  # body before tag rewriting
    body: str = ""  # body after tag rewriting
    data_path: str = "."
    references: frozenset[str] = frozenset()


@dataclass
class Page:
    """A top-level document yielding a main artifact and a preview artifact."""

    source_path: Path
    output_path: str
    content: str
    original_content: str = ""
    passphrase: str = ""
    is_root: bool = False

    def __post_init__(self):
        if not self.original_content:
            self.original_content = self.content

    @property
    def encrypted(self) -> bool:
        return bool(self.passphrase)

    @property
    def depth(self) -> int:
        """Directory levels between the output file and the output root."""
        return output_depth(self.output_path)

    @property
    def preview_name(self) -> str:
        """Flat file name used for this page in the preview tree.

        ``blog/post/index.html`` becomes ``blog-post.html``; root-level pages
        keep their own name.
        """
        path = PurePosixPath(self.output_path)
        if path.name == "index.html" and len(path.parts) > 1:
            return "-".join(path.parts[:-1]) + ".html"
        return path.name


@dataclass
class Asset:
    """A static file copied verbatim into the output tree."""

    source_path: Path
    output_path: str


@dataclass(frozen=True)
class Artifact:
    """A finished output file: relative path plus text or byte payload."""

    output_path: str
    payload: str | bytes


@dataclass
class Site:
    """Everything loaded for one build."""

    root: Path
    index: str
    header: str = ""
    footer: str = ""
    decrypt_form: str | None = None
    components: dict[str, Component] = field(default_factory=dict)
    pages: list[Page] = field(default_factory=list)
    assets: list[Asset] = field(default_factory=list)
    stylesheets: list[Asset] = field(default_factory=list)
    data: DataContext = field(default_factory=DataContext)
