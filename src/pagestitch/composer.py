"""Template composition for pagestitch.

Splits documents at their body boundary, turns custom component tags into
fragment invocations, and pulls the <preview> and <encrypt> markers out of
document heads.

Body boundaries are found by literal substring search; an HTML parser would
mangle the ``{{ }}`` expressions the templating runtime needs.
"""

import logging
import re
from collections.abc import Iterable

from .errors import StructuralError, UnknownComponentError
from .models import Component, Page, normalize_data_path

logger = logging.getLogger(__name__)

BODY_OPEN = "<body>"
BODY_CLOSE = "</body>"

PREVIEW_OPEN = "<preview>"
PREVIEW_CLOSE = "</preview>"
ENCRYPT_OPEN = "<encrypt>"
ENCRYPT_CLOSE = "</encrypt>"

HEADER_FRAGMENT = "header.html"
FOOTER_FRAGMENT = "footer.html"

# Name of the variable the wrapper template renders its body from
WRAPPER_SLOT = "_body"

FRAGMENT_OPEN = '{{{{ fragment("{name}", '
FRAGMENT_CLOSE = " ) }}"

_INVOCATION_RE = re.compile(r"""\bfragment\(\s*(["'])([^"']+)\1""")


def split_body(doc: str) -> tuple[str, str, str]:
    """Split a document into (head, body, tail) around its body markers.

    The head excludes ``<body>`` and the tail excludes ``</body>``.

    Raises:
        StructuralError: Unless exactly one ``<body>`` precedes exactly one
            ``</body>``.
    """
    opens = doc.count(BODY_OPEN)
    closes = doc.count(BODY_CLOSE)
    if opens != 1 or closes != 1:
        raise StructuralError(
            f"Expected exactly one {BODY_OPEN} and one {BODY_CLOSE}, "
            f"found {opens} and {closes}"
        )

    start = doc.index(BODY_OPEN)
    end = doc.index(BODY_CLOSE)
    if end < start:
        raise StructuralError(f"{BODY_CLOSE} appears before {BODY_OPEN}")

    return doc[:start], doc[start + len(BODY_OPEN) : end], doc[end + len(BODY_CLOSE) :]


def extract_wrapper(doc: str) -> tuple[str, str]:
    """Return the head and tail that surround the body of a document."""
    head, _, tail = split_body(doc)
    return head, tail


def extract_main(doc: str) -> tuple[str, str, str]:
    """Return (head, body, tail) of the root document."""
    return split_body(doc)


def extract_body(doc: str, required: bool = False) -> str:
    """Return the body content of a document.

    Without body markers the whole document is returned, unless ``required``
    is set, in which case a StructuralError is raised.
    """
    if not required and BODY_OPEN not in doc and BODY_CLOSE not in doc:
        return doc
    return split_body(doc)[1]


def head_section(doc: str) -> str:
    """Text before the first ``<body>``; the whole document if there is none."""
    index = doc.find(BODY_OPEN)
    return doc if index == -1 else doc[:index]


def wrapper_template(doc: str) -> str:
    """Build the scaffolding used to render isolated fragments as full pages."""
    head, tail = extract_wrapper(doc)
    return f"{head}{BODY_OPEN}\n\t{{{{ {WRAPPER_SLOT} }}}}\n{BODY_CLOSE}{tail}"


def main_template(doc: str) -> str:
    """Inject the header and footer fragments around the document body."""
    head, body, tail = extract_main(doc)
    return (
        f"{head}{BODY_OPEN}\n"
        f'\t{{{{ fragment("{HEADER_FRAGMENT}", this) }}}}\n'
        f"{body}\n"
        f'\t{{{{ fragment("{FOOTER_FRAGMENT}", this) }}}}\n'
        f"{BODY_CLOSE}{tail}"
    )


# Pages get exactly the same treatment as the root document
wrap_page = main_template


def _first_span(text: str, open_tag: str, close_tag: str) -> str | None:
    start = text.find(open_tag)
    if start == -1:
        return None
    end = text.find(close_tag, start)
    if end == -1:
        return None
    return text[start + len(open_tag) : end]


def _strip_spans(text: str, open_tag: str, close_tag: str) -> str:
    while True:
        start = text.find(open_tag)
        if start == -1:
            return text
        end = text.find(close_tag, start)
        if end == -1:
            # Unclosed marker; no later opening tag can be closed either
            return text
        text = text[:start] + text[end + len(close_tag) :]


def extract_preview_path(doc: str) -> str:
    """Data path declared by the first <preview> marker in the head.

    Returns ``"."`` (the whole data tree) when the document declares none.
    """
    span = _first_span(head_section(doc), PREVIEW_OPEN, PREVIEW_CLOSE)
    return normalize_data_path(span or "")


def extract_encrypt_key(doc: str) -> str:
    """Passphrase declared by the first <encrypt> marker in the head, or ''."""
    span = _first_span(head_section(doc), ENCRYPT_OPEN, ENCRYPT_CLOSE)
    return span.strip() if span else ""


def strip_markers(text: str) -> str:
    """Remove every <preview>...</preview> and <encrypt>...</encrypt> span."""
    text = _strip_spans(text, PREVIEW_OPEN, PREVIEW_CLOSE)
    return _strip_spans(text, ENCRYPT_OPEN, ENCRYPT_CLOSE)


def rewrite_tags(text: str, names: Iterable[str]) -> str:
    """Turn ``<name>arg</name>`` into a fragment invocation for each known name.

    The text between the tags is passed through untouched as the argument
    expression. Tags for unknown names are left alone, since they cannot be
    told apart from ordinary HTML elements. Markers are stripped afterwards,
    so running this twice changes nothing.
    """
    for name in sorted(names):
        open_tag = f"<{name}>"
        if open_tag not in text:
            continue
        text = text.replace(open_tag, FRAGMENT_OPEN.format(name=name))
        text = text.replace(f"</{name}>", FRAGMENT_CLOSE)
    return strip_markers(text)


def find_tag_references(text: str, names: Iterable[str]) -> set[str]:
    """Names whose literal opening tag appears in ``text``."""
    return {name for name in names if f"<{name}>" in text}


def fragment_invocations(text: str) -> list[str]:
    """Fragment names invoked in composed template text, in order."""
    return [match.group(2) for match in _INVOCATION_RE.finditer(text)]


def validate_invocations(text: str, known: Iterable[str], artifact: str) -> None:
    """Reject invocations of fragments that were never defined.

    Raises:
        UnknownComponentError: For the first unknown name.
    """
    known = set(known)
    for name in fragment_invocations(text):
        if name not in known:
            raise UnknownComponentError(name, artifact)


def parse_component(component: Component, names: Iterable[str]) -> None:
    """Fill in the raw body, preview path and references of a component."""
    try:
        _, body, _ = split_body(component.source)
    except StructuralError as e:
        raise StructuralError(f"Component {component.name}: {e}") from e

    component.raw_body = body
    component.body = body
    component.data_path = extract_preview_path(component.source)
    component.references = frozenset(find_tag_references(body, names))
    logger.debug(
        "Parsed component %s (data path %s, references: %s)",
        component.name,
        component.data_path,
        ", ".join(sorted(component.references)) or "none",
    )


def compose_components(components: dict[str, Component]) -> None:
    """Parse every component, then rewrite every body.

    References are computed from the raw bodies before any of them is
    rewritten.
    """
    names = set(components)
    for component in components.values():
        parse_component(component, names)
    for component in components.values():
        component.body = rewrite_tags(component.raw_body, names)


def compose_page(page: Page, names: Iterable[str]) -> None:
    """Extract the passphrase, inject header/footer and rewrite tags in place."""
    page.passphrase = extract_encrypt_key(page.content)
    try:
        wrapped = wrap_page(page.content)
    except StructuralError as e:
        raise StructuralError(f"Page {page.output_path}: {e}") from e
    page.content = rewrite_tags(wrapped, names)


def cleanup_whitespace(text: str) -> str:
    """Drop blank lines from rendered output."""
    return "\n".join(line for line in text.split("\n") if line.strip())
