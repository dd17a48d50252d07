"""Command-line interface for pagestitch."""

import logging
import time
from pathlib import Path

import click
import yaml

from . import __version__
from .builder import BuildResult, generate, resolve_output_dir
from .config import (
    CONFIG_FILENAME,
    config_to_dict,
    create_default_config,
    find_config_file,
    load_config,
)
from .encrypt import decrypt_page
from .errors import PagestitchError
from .watch import PollingWatcher, watch_and_rebuild


@click.group()
@click.version_option(version=__version__, prog_name="pagestitch")
def main():
    """Assemble static HTML sites from components and YAML data.

    pagestitch composes index.html, header.html, footer.html, pages and
    components/*.html against data/*.yaml, and can lock individual pages
    behind a passphrase that is checked entirely in the browser.

    \b
    Quick start:
      pagestitch config init        # Create pagestitch.yaml
      pagestitch build              # Build the site in the current directory
      pagestitch build site/ -w     # Build and rebuild on changes
      pagestitch decrypt www/x.html # Open an encrypted page locally
    """
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )


def _load(root: Path, config_path: str | None, output_dir: str | None):
    return load_config(
        config_path=Path(config_path) if config_path else None,
        start_path=root,
        output_override=output_dir,
    )


def _report(result: BuildResult, elapsed: float) -> None:
    if result.unused:
        click.echo("\nWarning: Unused components detected:", err=True)
        for component in result.unused:
            click.echo(f"  - {_relative_path(component.source_path)}", err=True)
        click.echo("", err=True)

    encrypted = len(result.encrypted_pages)
    suffix = f", {encrypted} encrypted" if encrypted else ""
    click.echo(
        f"Built {len(result.pages)} page(s), {len(result.components)} component(s){suffix} "
        f"-> {_relative_path(result.output_dir)} in {elapsed:.2f}s"
    )


def _build_once(root: Path, config_path: str | None, output_dir: str | None) -> BuildResult:
    start = time.monotonic()
    config = _load(root, config_path, output_dir)
    result = generate(root, config)
    _report(result, time.monotonic() - start)
    return result


@main.command()
@click.argument("root", default=".", type=click.Path(exists=True, file_okay=False))
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False),
    help="Output directory (default: www/ inside ROOT)",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Config file path",
)
@click.option("-w", "--watch", is_flag=True, help="Rebuild whenever a file changes")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
def build(root, output_dir, config_path, watch, verbose):
    """Build the site in ROOT (default: current directory).

    \b
    Examples:
      pagestitch build
      pagestitch build ./mysite
      pagestitch build ./mysite -o dist
      pagestitch build -w -v ./mysite
    """
    _configure_logging(verbose)
    root_path = Path(root)

    try:
        config = _load(root_path, config_path, output_dir)
        _build_once(root_path, config_path, output_dir)
    except PagestitchError as e:
        raise click.ClickException(f"Build failed: {e}")

    if not watch:
        return

    watcher = PollingWatcher(
        root_path,
        exclude=[resolve_output_dir(root_path, config)],
        interval=config.watch.interval,
        debounce=config.watch.debounce,
    )

    def rebuild(batch: list[str]) -> None:
        stamp = time.strftime("%H:%M:%S")
        shown = ", ".join(_relative_path(Path(p)) for p in batch)
        click.echo(f"[{stamp}] Changed: {shown} -> regenerating...")
        _build_once(root_path, config_path, output_dir)

    def on_error(batch: list[str], error: PagestitchError) -> None:
        click.echo(f"Regeneration failed: {error}", err=True)

    click.echo("\nWatching for changes... (Press Ctrl+C to stop)")
    try:
        watch_and_rebuild(rebuild, watcher, on_error)
    except KeyboardInterrupt:
        watcher.stop()
        click.echo("\nShutting down")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("-p", "--password", help="Passphrase (prompted if omitted)")
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    help="Write the decrypted page here instead of stdout",
)
def decrypt(file, password, output_path):
    """Decrypt a page produced by an <encrypt> marker.

    \b
    Examples:
      pagestitch decrypt www/private.html
      pagestitch decrypt www/private.html -p "secret" -o private.plain.html
    """
    input_path = Path(file)
    try:
        content = input_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Cannot read {input_path}: {e}")

    if password is None:
        password = click.prompt("Enter passphrase", hide_input=True)

    try:
        html = decrypt_page(content, password)
    except PagestitchError as e:
        raise click.ClickException(str(e))

    if output_path is None:
        click.echo(html)
        return

    try:
        Path(output_path).write_text(html, encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Cannot write {output_path}: {e}")
    click.echo(f"Decrypted: {_relative_path(input_path)} -> {output_path}")


@main.group()
def config():
    """Manage pagestitch configuration."""
    pass


@config.command("init")
@click.option(
    "-d",
    "--directory",
    type=click.Path(),
    default=".",
    help="Directory to create config in",
)
def config_init(directory):
    """Create a new pagestitch.yaml configuration file."""
    try:
        config_path = create_default_config(Path(directory))
    except PagestitchError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created: {config_path}")


@config.command("show")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Config file path",
)
@click.option(
    "-d",
    "--directory",
    type=click.Path(exists=True, file_okay=False),
    help="Directory to search from",
)
def config_show(config_path, directory):
    """Display current configuration.

    Shows merged configuration from file, environment, and defaults.
    """
    start = Path(directory) if directory else None
    try:
        cfg = load_config(config_path=Path(config_path) if config_path else None, start_path=start)
    except PagestitchError as e:
        raise click.ClickException(str(e))

    if cfg.config_path is None:
        searched = start or Path.cwd()
        click.echo(f"# No {CONFIG_FILENAME} found (searched from {searched}); using defaults")
    click.echo(yaml.dump(config_to_dict(cfg), default_flow_style=False, sort_keys=False))


@config.command("where")
@click.option(
    "-d",
    "--directory",
    type=click.Path(exists=True, file_okay=False),
    help="Directory to search from",
)
def config_where(directory):
    """Show which config file would be used."""
    start = Path(directory) if directory else Path.cwd()
    config_path = find_config_file(start)

    if config_path:
        click.echo(f"Config file: {config_path}")
    else:
        click.echo(f"No {CONFIG_FILENAME} found (searched from {start})")


def _relative_path(path: Path) -> str:
    """Get a relative path for display."""
    try:
        return str(Path(path).resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main()
