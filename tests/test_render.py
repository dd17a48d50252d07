"""Tests for pagestitch.render module."""

from pathlib import Path

import pytest

from pagestitch.composer import compose_components, rewrite_tags, wrapper_template
from pagestitch.errors import DataPathError, RenderError, UnknownComponentError
from pagestitch.models import Component, DataContext
from pagestitch.render import Renderer, fragment_context


def _build(bodies, data=None, header="", footer="", heads=None, strict=True):
    """Compose components from bodies and return (renderer, components)."""
    heads = heads or {}
    components = {
        name: Component(
            name=name,
            source_path=Path(f"components/{name}.html"),
            source=f"<html><head>{heads.get(name, '')}</head><body>{body}</body></html>",
        )
        for name, body in bodies.items()
    }
    compose_components(components)
    renderer = Renderer(components, DataContext(data or {}), header=header, footer=footer, strict=strict)
    return renderer, components


def _renderer(bodies, **kwargs):
    return _build(bodies, **kwargs)[0]


class TestFragmentContext:
    """Tests for fragment context construction."""

    def test_mapping_keys_exposed(self):
        context = fragment_context({"Title": "Acme"})
        assert context["Title"] == "Acme"
        assert context["this"] == {"Title": "Acme"}

    def test_scalar_as_this(self):
        assert fragment_context("text") == {"this": "text"}

    def test_sequence_as_this(self):
        assert fragment_context([1, 2]) == {"this": [1, 2]}


class TestRenderComponent:
    """Tests for rendering component previews."""

    def test_preview_data(self):
        """Test that a component renders the data at its preview path."""
        renderer, components = _build(
            {"card": "<h2>{{ Title }}</h2>"},
            data={"projects": {"Featured": {"Title": "Acme"}}},
            heads={"card": "<preview>projects.Featured</preview>"},
        )
        html = renderer.render_component(components["card"])
        assert html == "<h2>Acme</h2>"

    def test_missing_preview_path(self):
        renderer, components = _build(
            {"card": "<h2>{{ Title }}</h2>"},
            data={"projects": {}},
            heads={"card": "<preview>projects.Featured</preview>"},
        )
        with pytest.raises(DataPathError) as exc_info:
            renderer.render_component(components["card"])

        assert exc_info.value.segment == "Featured"

    def test_nested_component(self):
        """Test that a component can invoke another with a sub-value."""
        renderer, components = _build(
            {
                "post-list": "<ul>{% for post in this %}<post-item>post</post-item>{% endfor %}</ul>",
                "post-item": "<li>{{ title }}</li>",
            },
            data={"posts": [{"title": "One"}, {"title": "Two"}]},
            heads={"post-list": "<preview>posts</preview>"},
        )
        html = renderer.render_component(components["post-list"])
        assert html == "<ul><li>One</li><li>Two</li></ul>"


class TestRenderDocument:
    """Tests for rendering composed pages."""

    def test_invocation_with_data(self):
        renderer = _renderer({"card": "<b>{{ Title }}</b>"}, data={"p": {"F": {"Title": "Acme"}}})
        source = rewrite_tags("<div><card>p.F</card></div>", {"card"})
        assert renderer.render_document(source, "index.html") == "<div><b>Acme</b></div>"

    def test_header_and_footer(self):
        renderer = _renderer({}, data={"site": {"name": "Example"}}, header="<nav>{{ site.name }}</nav>", footer="<hr>")
        source = '{{ fragment("header.html", this) }}|{{ fragment("footer.html", this) }}'
        assert renderer.render_document(source, "index.html") == "<nav>Example</nav>|<hr>"

    def test_data_is_escaped(self):
        """Test that data values are HTML-escaped while fragments are not."""
        renderer = _renderer({"card": "<i>{{ this }}</i>"}, data={"v": "<script>"})
        source = rewrite_tags("<card>v</card>", {"card"})
        assert renderer.render_document(source, "x") == "<i>&lt;script&gt;</i>"

    def test_unknown_fragment(self):
        renderer = _renderer({})
        with pytest.raises(UnknownComponentError):
            renderer.render_document('{{ fragment("ghost") }}', "x")

    def test_strict_undefined(self):
        """Test that strict mode rejects undefined names."""
        renderer = _renderer({}, strict=True)
        with pytest.raises(RenderError, match="Cannot render x"):
            renderer.render_document("{{ missing.value }}", "x")

    def test_lenient_undefined(self):
        renderer = _renderer({}, strict=False)
        assert renderer.render_document("[{{ missing }}]", "x") == "[]"

    def test_syntax_error(self):
        renderer = _renderer({})
        with pytest.raises(RenderError):
            renderer.render_document("{{ unclosed", "x")

    def test_runtime_error_wrapped(self):
        """Test that Python errors raised while rendering become RenderError."""
        renderer = _renderer({}, data={"p": {"Title": "Acme"}})
        with pytest.raises(RenderError, match="Cannot render about.html") as exc_info:
            renderer.render_document("{{ p.Title + 1 }}", "about.html")

        assert isinstance(exc_info.value.__cause__, TypeError)

    def test_data_key_shadowing_fragment(self):
        """Test that a 'fragment' data key breaking a nested call is wrapped."""
        renderer = _renderer({"card": "<badge>this</badge>", "badge": "<i>b</i>"}, data={"m": {"fragment": "x"}})
        source = rewrite_tags("<card>m</card>", {"card", "badge"})
        with pytest.raises(RenderError, match="Cannot render index.html"):
            renderer.render_document(source, "index.html")


class TestMappingLookup:
    """Tests for dot lookups on data mappings."""

    DATA = {"nav": {"links": {"items": ["Home", "About"], "get": "value"}}}

    def test_key_named_like_dict_method(self):
        """Test that a key named 'items' wins over dict.items."""
        renderer = _renderer({}, data=self.DATA)
        html = renderer.render_document('{{ nav.links.items | join(",") }}|{{ nav.links.get }}', "x")
        assert html == "Home,About|value"

    def test_tag_argument_uses_key(self):
        renderer = _renderer({"menu": "{% for link in this %}<li>{{ link }}</li>{% endfor %}"}, data=self.DATA)
        source = rewrite_tags("<menu>nav.links.items</menu>", {"menu"})
        assert renderer.render_document(source, "x") == "<li>Home</li><li>About</li>"

    def test_missing_key_falls_back_to_attribute(self):
        renderer = _renderer({}, data=self.DATA)
        assert renderer.render_document("{{ nav.links.keys() | sort | join(',') }}", "x") == "get,items"

    def test_missing_key_lenient(self):
        renderer = _renderer({}, data=self.DATA, strict=False)
        assert renderer.render_document("[{{ nav.nothing }}]", "x") == "[]"


class TestRenderWrapped:
    """Tests for wrapping rendered fragments."""

    def test_wrapper(self):
        renderer = _renderer({})
        wrapper = wrapper_template("<html><head><title>T</title></head><body><p>gone</p></body></html>")
        html = renderer.render_wrapped(wrapper, "<div>card</div>", "card")

        assert "<title>T</title>" in html
        assert "<div>card</div>" in html
        assert "gone" not in html

