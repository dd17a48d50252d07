"""File discovery for pagestitch.

Reads a site directory into a Site. Optional directories (components, data,
assets) that do not exist simply contribute nothing.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from .composer import extract_body
from .errors import DataFileError, DuplicateNameError, SiteIOError
from .models import Asset, Component, DataContext, Page, Site

logger = logging.getLogger(__name__)

INDEX_FILE = "index.html"
HEADER_FILE = "header.html"
FOOTER_FILE = "footer.html"
DECRYPT_FILE = "decrypt.html"

COMPONENTS_DIR = "components"
DATA_DIR = "data"
ASSETS_DIR = "assets"

DATA_SUFFIXES = {".yaml", ".yml"}


def read_text(path: Path) -> str:
    """Read a UTF-8 file.

    Raises:
        SiteIOError: If the file cannot be read or decoded.
    """
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SiteIOError(path, f"Cannot read file ({e})") from e


def _files(directory: Path, pattern: str = "*") -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.rglob(pattern) if p.is_file())


def load_templates(root: Path, decrypt_file: str = DECRYPT_FILE) -> dict[str, str | None]:
    """Load the root template and the fixed-name fragments.

    Returns:
        Mapping with keys ``index`` (full document), ``header`` and ``footer``
        (body content, empty when absent) and ``decrypt`` (full document or
        None when absent).

    Raises:
        SiteIOError: If index.html is missing or unreadable.
    """
    index_path = root / INDEX_FILE
    if not index_path.is_file():
        raise SiteIOError(index_path, "Required template not found")

    templates: dict[str, str | None] = {
        "index": read_text(index_path),
        "header": "",
        "footer": "",
        "decrypt": None,
    }
    for key, filename in (("header", HEADER_FILE), ("footer", FOOTER_FILE)):
        path = root / filename
        if path.is_file():
            templates[key] = extract_body(read_text(path))

    decrypt_path = root / decrypt_file
    if decrypt_path.is_file():
        templates["decrypt"] = read_text(decrypt_path)

    return templates


def load_components(root: Path) -> dict[str, Component]:
    """Discover every components/**/*.html file.

    Raises:
        DuplicateNameError: If two files share a stem.
    """
    components: dict[str, Component] = {}
    for path in _files(root / COMPONENTS_DIR, "*.html"):
        name = path.stem
        if name in components:
            raise DuplicateNameError("component", name, [components[name].source_path, path])
        components[name] = Component(name=name, source_path=path, source=read_text(path))
    return components


def load_pages(
    root: Path,
    exclude: tuple[str, ...] = (),
    reserved: tuple[str, ...] = (INDEX_FILE, HEADER_FILE, FOOTER_FILE, DECRYPT_FILE),
) -> list[Page]:
    """Discover pages.

    Any .html file at the root other than the reserved names is a page, and
    so is every index.html in a subdirectory. The components, data and assets
    directories, hidden directories and anything in ``exclude`` (relative
    POSIX paths, such as the output directory) are skipped.
    """
    skipped = {COMPONENTS_DIR, DATA_DIR, ASSETS_DIR}
    excluded = tuple(e.strip("/") for e in exclude if e.strip("/"))

    pages: list[Page] = []
    for path in _files(root, "*.html"):
        rel = path.relative_to(root).as_posix()
        parts = rel.split("/")

        if len(parts) == 1:
            if rel in reserved:
                continue
        else:
            if parts[-1] != INDEX_FILE:
                continue
            if parts[0] in skipped or any(p.startswith(".") for p in parts[:-1]):
                continue
            if any(rel == e or rel.startswith(e + "/") for e in excluded):
                continue

        pages.append(Page(source_path=path, output_path=rel, content=read_text(path)))
    return pages


def load_assets(root: Path) -> list[Asset]:
    """Discover assets/** files, keeping their layout under assets/."""
    assets_path = root / ASSETS_DIR
    return [
        Asset(source_path=path, output_path=f"{ASSETS_DIR}/{path.relative_to(assets_path).as_posix()}")
        for path in _files(assets_path)
    ]


def load_stylesheets(root: Path) -> list[Asset]:
    """Root-level *.css files, copied to the output root."""
    return [Asset(source_path=path, output_path=path.name) for path in sorted(root.glob("*.css")) if path.is_file()]


def parse_data_file(path: Path) -> Any:
    """Parse one YAML data file into a nested tree.

    Raises:
        DataFileError: If the YAML is invalid.
    """
    try:
        data = yaml.safe_load(read_text(path))
    except yaml.YAMLError as e:
        raise DataFileError(f"Invalid YAML in {path}: {e}") from e
    return {} if data is None else data


def load_data(root: Path) -> dict[str, Any]:
    """Load data/**/*.yaml into one namespace per file stem.

    Raises:
        DuplicateNameError: If two files share a stem.
    """
    data: dict[str, Any] = {}
    sources: dict[str, Path] = {}
    for path in _files(root / DATA_DIR):
        if path.suffix.lower() not in DATA_SUFFIXES:
            continue
        namespace = path.stem
        if namespace in sources:
            raise DuplicateNameError("data namespace", namespace, [sources[namespace], path])
        sources[namespace] = path
        data[namespace] = parse_data_file(path)
    return data


def load_site(
    root: Path,
    exclude: tuple[str, ...] = (),
    decrypt_file: str = DECRYPT_FILE,
) -> Site:
    """Read everything a build needs from the site directory."""
    root = Path(root)
    logger.info("Loading site from: %s", root.resolve())

    templates = load_templates(root, decrypt_file)

    assets = load_assets(root)
    logger.info("Loaded %d assets", len(assets))

    data = load_data(root)
    logger.info("Loaded %d data namespaces", len(data))

    components = load_components(root)
    logger.info("Loaded %d components", len(components))

    reserved = (INDEX_FILE, HEADER_FILE, FOOTER_FILE, decrypt_file)
    pages = load_pages(root, exclude=exclude, reserved=reserved)
    logger.info("Loaded %d pages", len(pages))

    return Site(
        root=root,
        index=templates["index"] or "",
        header=templates["header"] or "",
        footer=templates["footer"] or "",
        decrypt_form=templates["decrypt"],
        components=components,
        pages=pages,
        assets=assets,
        stylesheets=load_stylesheets(root),
        data=DataContext(data),
    )
