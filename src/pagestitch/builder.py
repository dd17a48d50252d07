"""Build pipeline for pagestitch.

One build is a single synchronous pass: load, compose, check, render,
rewrite paths, encrypt where requested, then write. Nothing is kept between
builds.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from .composer import (
    FOOTER_FRAGMENT,
    HEADER_FRAGMENT,
    cleanup_whitespace,
    compose_components,
    compose_page,
    rewrite_tags,
    validate_invocations,
    wrapper_template,
)
from .config import PagestitchConfig
from .encrypt import encrypt_page, load_decrypt_form
from .errors import ArtifactError, PagestitchError, SiteIOError
from .loader import INDEX_FILE, load_site
from .models import Artifact, Component, Page, Site
from .paths import PREVIEW_DEPTH, rewrite_for_preview, rewrite_paths
from .render import Renderer
from .usage import check_cycles, find_unused_components

logger = logging.getLogger(__name__)

PREVIEW_COMPONENTS = "components"
PREVIEW_PAGES = "pages"


@dataclass
class BuildResult:
    """Outcome of one build."""

    artifacts: list[Artifact] = field(default_factory=list)
    pages: list[Page] = field(default_factory=list)
    components: dict[str, Component] = field(default_factory=dict)
    unused: list[Component] = field(default_factory=list)
    output_dir: Path | None = None

    @property
    def encrypted_pages(self) -> list[Page]:
        return [page for page in self.pages if page.encrypted]


@contextmanager
def artifact_errors(name: str) -> Iterator[None]:
    """Tag any pagestitch error raised inside the block with an artifact name."""
    try:
        yield
    except ArtifactError:
        raise
    except PagestitchError as e:
        raise ArtifactError(name, e) from e


def resolve_output_dir(root: Path, config: PagestitchConfig) -> Path:
    """Output directory, relative paths taken from the site root."""
    return Path(root) / config.output.directory


def _relative_excludes(root: Path, output_dir: Path) -> tuple[str, ...]:
    try:
        rel = output_dir.resolve().relative_to(Path(root).resolve())
    except ValueError:
        return ()
    return (rel.as_posix(),)


def _preview_path(config: PagestitchConfig, kind: str, filename: str) -> str:
    return f"{config.output.preview_directory}/{kind}/{filename}"


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise SiteIOError(path, f"Cannot read asset ({e})") from e


def build_site(root: Path, config: PagestitchConfig | None = None) -> BuildResult:
    """Load a site directory and build every artifact in memory."""
    config = config or PagestitchConfig()
    root = Path(root)
    output_dir = resolve_output_dir(root, config)

    with artifact_errors("site"):
        site = load_site(
            root,
            exclude=_relative_excludes(root, output_dir),
            decrypt_file=config.decrypt_template,
        )

    result = build_from_site(site, config)
    result.output_dir = output_dir
    return result


def build_from_site(site: Site, config: PagestitchConfig | None = None) -> BuildResult:
    """Compose, render and assemble every artifact of a loaded site."""
    config = config or PagestitchConfig()
    components = site.components
    names = set(components)

    root_page = Page(
        source_path=site.root / INDEX_FILE,
        output_path=INDEX_FILE,
        content=site.index,
        is_root=True,
    )
    pages = [root_page] + site.pages

    # Entry points for the usage report, captured before anything is rewritten
    entries = [site.index, site.header, site.footer] + [p.original_content for p in site.pages]

    with artifact_errors(INDEX_FILE):
        wrapper = rewrite_tags(wrapper_template(site.index), names)

    with artifact_errors(PREVIEW_COMPONENTS):
        compose_components(components)
        check_cycles(components)

    for page in pages:
        with artifact_errors(page.output_path):
            compose_page(page, names)

    header = rewrite_tags(site.header, names)
    footer = rewrite_tags(site.footer, names)

    known = names | {HEADER_FRAGMENT, FOOTER_FRAGMENT}
    templates = [(name, c.body) for name, c in components.items()]
    templates += [(HEADER_FRAGMENT, header), (FOOTER_FRAGMENT, footer)]
    templates += [(page.output_path, page.content) for page in pages]
    for name, text in templates:
        with artifact_errors(name):
            validate_invocations(text, known, name)

    renderer = Renderer(components, site.data, header=header, footer=footer, strict=config.strict_data)

    def finish(html: str) -> str:
        return cleanup_whitespace(html) if config.output.cleanup_whitespace else html

    artifacts: list[Artifact] = []

    for name in sorted(components):
        output_path = _preview_path(config, PREVIEW_COMPONENTS, f"{name}.html")
        with artifact_errors(output_path):
            html = renderer.render_component(components[name])
            document = renderer.render_wrapped(wrapper, html, name)
            artifacts.append(Artifact(output_path, rewrite_paths(finish(document), PREVIEW_DEPTH)))
    logger.info("Generated %d component previews", len(components))

    form_html: str | None = None
    for page in pages:
        with artifact_errors(page.output_path):
            rendered = finish(renderer.render_document(page.content, page.output_path))

            main = rewrite_paths(rendered, page.depth)
            if page.encrypted:
                if form_html is None:
                    form_html = load_decrypt_form(site.decrypt_form)
                main = encrypt_page(main, page.passphrase, form_html)
                logger.info("Encrypted %s", page.output_path)
            artifacts.append(Artifact(page.output_path, main))

            preview_path = _preview_path(config, PREVIEW_PAGES, page.preview_name)
            artifacts.append(Artifact(preview_path, rewrite_for_preview(rendered)))
    logger.info("Generated %d pages", len(pages))

    for asset in site.assets + site.stylesheets:
        with artifact_errors(asset.output_path):
            artifacts.append(Artifact(asset.output_path, _read_bytes(asset.source_path)))
    logger.info("Collected %d assets", len(site.assets) + len(site.stylesheets))

    seen: dict[str, int] = {}
    for artifact in artifacts:
        seen[artifact.output_path] = seen.get(artifact.output_path, 0) + 1
    for output_path, count in seen.items():
        if count > 1:
            logger.warning("%d artifacts share the output path %s; the last one wins", count, output_path)

    return BuildResult(
        artifacts=artifacts,
        pages=pages,
        components=components,
        unused=find_unused_components(entries, components),
    )


def write_artifacts(output_dir: Path, artifacts: list[Artifact]) -> None:
    """Write artifacts below output_dir, creating directories as needed.

    Raises:
        SiteIOError: If a file cannot be written.
    """
    output_dir = Path(output_dir)
    for artifact in artifacts:
        dest = output_dir / artifact.output_path
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(artifact.payload, bytes):
                dest.write_bytes(artifact.payload)
            else:
                dest.write_text(artifact.payload, encoding="utf-8")
        except OSError as e:
            raise SiteIOError(dest, f"Cannot write output ({e})") from e


def generate(root: Path, config: PagestitchConfig | None = None) -> BuildResult:
    """Build a site and write it to its output directory."""
    config = config or PagestitchConfig()
    result = build_site(root, config)
    write_artifacts(result.output_dir, result.artifacts)
    logger.info("Wrote %d files to %s", len(result.artifacts), result.output_dir)
    return result
