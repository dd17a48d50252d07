"""Relative path adjustment for nested output files."""

import re
from pathlib import PurePosixPath

# Preview files live at <output>/<preview>/<kind>/<name>.html
PREVIEW_DEPTH = 2

UP = "../"

# A value is rewritten only when it starts with a letter and holds no ':'.
# That single rule leaves absolute ("/x"), upward ("../x"), fragment ("#x")
# and scheme-qualified ("https://x", "mailto:x") values alone.
# Only the quote that opened the value can close it.
_ATTR_RE = re.compile(
    r"""(?<![\w-])(?P<attr>href|src)="""
    r"""(?:"(?P<double>[A-Za-z][^":]*)"|'(?P<single>[A-Za-z][^':]*)')"""
)


def rewrite_paths(text: str, depth: int) -> str:
    """Prefix relative href/src values with ``depth`` upward segments.

    Args:
        text: Rendered HTML.
        depth: Directory levels between the file and the output root.

    Returns:
        The adjusted text; unchanged when depth is 0.
    """
    if depth < 0:
        raise ValueError(f"depth must be non-negative, got {depth}")
    if depth == 0:
        return text

    prefix = UP * depth

    def _prefix(match: re.Match) -> str:
        if match.group("double") is not None:
            quote, value = '"', match.group("double")
        else:
            quote, value = "'", match.group("single")
        return f"{match.group('attr')}={quote}{prefix}{value}{quote}"

    return _ATTR_RE.sub(_prefix, text)


def rewrite_for_preview(text: str) -> str:
    """Adjust paths for a file in the preview tree."""
    return rewrite_paths(text, PREVIEW_DEPTH)


def output_depth(output_path: str) -> int:
    """Directory levels of a relative output path (``a/b/x.html`` -> 2)."""
    return len(PurePosixPath(output_path).parts) - 1
