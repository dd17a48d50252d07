"""Shared fixtures for pagestitch tests."""

from pathlib import Path

import pytest

INDEX_HTML = """<!DOCTYPE html>
<html>
<head>
<title>Home</title>
<link rel="stylesheet" href="style.css">
</head>
<body>
<h1>Welcome</h1>
<card>projects.Featured</card>
</body>
</html>"""

HEADER_HTML = """<html><head></head><body>
<nav><a href="index.html">Home</a></nav>
</body></html>"""

FOOTER_HTML = """<html><head></head><body>
<footer>Footer text</footer>
</body></html>"""

CARD_HTML = """<html>
<head><preview>projects.Featured</preview></head>
<body>
<div class="card"><h2>{{ Title }}</h2><img src="assets/logo.png"></div>
</body>
</html>"""

PROJECTS_YAML = """Featured:
  Title: Acme
  Tags:
    - one
    - two
"""


def write_files(root: Path, files: dict[str, str | bytes]) -> Path:
    """Write a mapping of relative path -> content below root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_site(tmp_path):
    """Factory writing a site directory; extra files override the defaults."""

    def _make(files: dict[str, str | bytes] | None = None, defaults: bool = True) -> Path:
        root = tmp_path / "site"
        root.mkdir(exist_ok=True)
        base: dict[str, str | bytes] = {}
        if defaults:
            base = {
                "index.html": INDEX_HTML,
                "header.html": HEADER_HTML,
                "footer.html": FOOTER_HTML,
                "components/card.html": CARD_HTML,
                "data/projects.yaml": PROJECTS_YAML,
                "assets/logo.png": b"\x89PNG fake",
                "style.css": "body { color: black; }",
            }
        base.update(files or {})
        return write_files(root, base)

    return _make
