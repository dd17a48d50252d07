"""pagestitch - Assemble static HTML sites from components, optionally encrypted."""

__version__ = "0.1.0"

from .builder import build_site, generate, write_artifacts
from .composer import rewrite_tags
from .crypto import open_sealed, seal
from .encrypt import decrypt_page, encrypt_page
from .errors import PagestitchError
from .paths import rewrite_paths

__all__ = [
    "build_site",
    "generate",
    "write_artifacts",
    "rewrite_tags",
    "rewrite_paths",
    "seal",
    "open_sealed",
    "encrypt_page",
    "decrypt_page",
    "PagestitchError",
    "__version__",
]
