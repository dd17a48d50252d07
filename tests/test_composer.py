"""Tests for pagestitch.composer module."""

from pathlib import Path

import pytest

from pagestitch.composer import (
    cleanup_whitespace,
    compose_components,
    compose_page,
    extract_body,
    extract_encrypt_key,
    extract_preview_path,
    extract_wrapper,
    fragment_invocations,
    main_template,
    rewrite_tags,
    split_body,
    strip_markers,
    validate_invocations,
    wrapper_template,
)
from pagestitch.errors import StructuralError, UnknownComponentError
from pagestitch.models import Component, Page


def _component(name, body, head=""):
    source = f"<html><head>{head}</head><body>{body}</body></html>"
    return Component(name=name, source_path=Path(f"components/{name}.html"), source=source)


class TestSplitBody:
    """Tests for body boundary detection."""

    def test_split(self):
        head, body, tail = split_body("<html><head></head><body><p>x</p></body></html>")
        assert head == "<html><head></head>"
        assert body == "<p>x</p>"
        assert tail == "</html>"

    def test_missing_open_marker(self):
        with pytest.raises(StructuralError):
            split_body("<html><p>x</p></body></html>")

    def test_missing_close_marker(self):
        with pytest.raises(StructuralError):
            split_body("<html><body><p>x</p></html>")

    def test_duplicate_markers(self):
        """Test that a second <body> is rejected."""
        with pytest.raises(StructuralError, match="exactly one"):
            split_body("<body>a</body><body>b</body>")

    def test_close_before_open(self):
        with pytest.raises(StructuralError):
            split_body("</body>x<body>")

    def test_attributes_are_not_markers(self):
        """Test that <body class=...> does not count as a marker."""
        with pytest.raises(StructuralError):
            split_body('<body class="dark">x</body>')


class TestTemplates:
    """Tests for wrapper and main template construction."""

    DOC = "<html><head><title>T</title></head><body><h1>Hi</h1></body></html>"

    def test_extract_wrapper(self):
        head, tail = extract_wrapper(self.DOC)
        assert head == "<html><head><title>T</title></head>"
        assert tail == "</html>"

    def test_wrapper_template_has_slot(self):
        """Test that the wrapper drops the body and exposes a slot."""
        wrapper = wrapper_template(self.DOC)
        assert "<h1>Hi</h1>" not in wrapper
        assert "{{ _body }}" in wrapper
        assert wrapper.startswith("<html><head><title>T</title></head><body>")
        assert wrapper.endswith("</body></html>")

    def test_main_template_order(self):
        """Test that header, body and footer appear in order."""
        doc = main_template(self.DOC)
        header = doc.index('fragment("header.html", this)')
        body = doc.index("<h1>Hi</h1>")
        footer = doc.index('fragment("footer.html", this)')
        assert header < body < footer

    def test_extract_body_without_markers(self):
        assert extract_body("<nav>x</nav>") == "<nav>x</nav>"

    def test_extract_body_required(self):
        with pytest.raises(StructuralError):
            extract_body("<nav>x</nav>", required=True)


class TestMarkers:
    """Tests for <preview> and <encrypt> marker handling."""

    def test_preview_path(self):
        doc = "<html><head><preview>projects.Featured</preview></head><body></body></html>"
        assert extract_preview_path(doc) == ".projects.Featured"

    def test_preview_defaults_to_root(self):
        assert extract_preview_path("<html><head></head><body></body></html>") == "."

    def test_first_preview_wins(self):
        doc = "<head><preview>a</preview><preview>b</preview></head><body></body>"
        assert extract_preview_path(doc) == ".a"

    def test_preview_in_body_ignored(self):
        """Test that markers are only read from the head."""
        doc = "<head></head><body><preview>a</preview></body>"
        assert extract_preview_path(doc) == "."

    def test_encrypt_key_trimmed(self):
        doc = "<head><encrypt>  hunter2 \n</encrypt></head><body></body>"
        assert extract_encrypt_key(doc) == "hunter2"

    def test_encrypt_key_missing(self):
        assert extract_encrypt_key("<head></head><body></body>") == ""

    def test_first_encrypt_wins(self):
        doc = "<head><encrypt>one</encrypt><encrypt>two</encrypt></head><body></body>"
        assert extract_encrypt_key(doc) == "one"

    def test_strip_removes_all_spans(self):
        text = "a<preview>x</preview>b<encrypt>k</encrypt>c<preview>y</preview>d"
        assert strip_markers(text) == "abcd"

    def test_strip_leaves_unclosed(self):
        """Test that an unclosed marker stays in place."""
        assert strip_markers("a<preview>x") == "a<preview>x"


class TestRewriteTags:
    """Tests for custom tag rewriting."""

    def test_rewrite_known_tag(self):
        result = rewrite_tags("<card>projects.Featured</card>", {"card"})
        assert result == '{{ fragment("card", projects.Featured ) }}'

    def test_unknown_tag_left_alone(self):
        """Test that tags without a component stay as plain HTML."""
        assert rewrite_tags("<section>x</section>", {"card"}) == "<section>x</section>"

    def test_multiple_names(self):
        result = rewrite_tags("<a1>.</a1><b2>x.y</b2>", {"a1", "b2"})
        assert 'fragment("a1", . ) }}' in result
        assert 'fragment("b2", x.y ) }}' in result
        assert "<a1>" not in result and "<b2>" not in result

    def test_idempotent(self):
        """Test that rewriting twice equals rewriting once."""
        text = "<head><preview>a</preview></head><card>a</card><list>b</list>"
        once = rewrite_tags(text, {"card", "list"})
        assert rewrite_tags(once, {"card", "list"}) == once

    def test_markers_stripped(self):
        text = "<head><encrypt>pw</encrypt></head><body><card>x</card></body>"
        result = rewrite_tags(text, {"card"})
        assert "<encrypt>" not in result
        assert "pw" not in result

    def test_fragment_invocations(self):
        text = rewrite_tags("<card>x</card><list>y</list>", {"card", "list"})
        assert sorted(fragment_invocations(text)) == ["card", "list"]

    def test_validate_unknown_invocation(self):
        """Test that invoking an undefined fragment is rejected."""
        with pytest.raises(UnknownComponentError) as exc_info:
            validate_invocations('{{ fragment("ghost", this) }}', {"card"}, "about.html")

        assert exc_info.value.name == "ghost"
        assert "about.html" in str(exc_info.value)

    def test_validate_known_invocations(self):
        validate_invocations('{{ fragment("card", this) }}', {"card"}, "x")


class TestComposeComponents:
    """Tests for component composition."""

    def test_references_from_raw_body(self):
        """Test that references are found before rewriting."""
        components = {
            "page-list": _component("page-list", "<ul><item>x</item></ul>"),
            "item": _component("item", "<li>{{ this }}</li>"),
        }
        compose_components(components)

        assert components["page-list"].references == frozenset({"item"})
        assert components["item"].references == frozenset()
        assert "<item>" in components["page-list"].raw_body
        assert 'fragment("item", x ) }}' in components["page-list"].body

    def test_data_path(self):
        components = {"card": _component("card", "<p></p>", head="<preview>posts.Latest</preview>")}
        compose_components(components)
        assert components["card"].data_path == ".posts.Latest"

    def test_bad_structure_names_component(self):
        components = {"broken": Component("broken", Path("components/broken.html"), "<div>no body</div>")}
        with pytest.raises(StructuralError, match="Component broken"):
            compose_components(components)


class TestComposePage:
    """Tests for page composition."""

    def test_passphrase_and_rewrite(self):
        content = (
            "<html><head><encrypt>secret</encrypt></head>"
            "<body><card>x</card></body></html>"
        )
        page = Page(source_path=Path("p.html"), output_path="p.html", content=content)
        compose_page(page, {"card"})

        assert page.passphrase == "secret"
        assert page.original_content == content
        assert "<encrypt>" not in page.content
        assert 'fragment("header.html", this)' in page.content
        assert 'fragment("card", x ) }}' in page.content

    def test_bad_structure_names_page(self):
        page = Page(source_path=Path("p.html"), output_path="blog/index.html", content="<p>x</p>")
        with pytest.raises(StructuralError, match="Page blog/index.html"):
            compose_page(page, set())


class TestCleanupWhitespace:
    """Tests for blank line removal."""

    def test_drops_blank_lines(self):
        assert cleanup_whitespace("a\n\n   \n\tb\n") == "a\n\tb"

    def test_keeps_content_lines(self):
        assert cleanup_whitespace("a\nb") == "a\nb"
