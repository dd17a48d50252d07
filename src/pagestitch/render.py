"""Execution of composed templates with Jinja2.

Composed fragments are registered by name once, after composition, and are
read-only from then on. A ``fragment(name, value)`` global renders a named
fragment with ``value`` as its context.
"""

import logging
from collections.abc import Mapping
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined, TemplateError, Undefined
from markupsafe import Markup

from .composer import FOOTER_FRAGMENT, HEADER_FRAGMENT, WRAPPER_SLOT
from .errors import PagestitchError, RenderError, UnknownComponentError
from .models import Component, DataContext

logger = logging.getLogger(__name__)


def fragment_context(value: Any) -> dict[str, Any]:
    """Build the render context for a value passed to a fragment.

    A mapping's keys become top-level names. The value itself is always
    available as ``this``.
    """
    context: dict[str, Any] = {}
    if isinstance(value, Mapping):
        context.update({str(key): item for key, item in value.items()})
    context["this"] = value
    return context


class DataEnvironment(Environment):
    """Environment whose dot lookups read mapping keys before attributes.

    Keeps ``{{ nav.items }}`` on the YAML value named ``items`` instead of the
    dict method of that name.
    """

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, Mapping):
            try:
                return obj[attribute]
            except (KeyError, TypeError):
                pass
        return super().getattr(obj, attribute)


class Renderer:
    """Renders composed pages and component previews against the data tree.

    Each Renderer owns its compiled-fragment table, so independent renderers
    can be used side by side.
    """

    def __init__(
        self,
        components: dict[str, Component],
        data: DataContext,
        header: str = "",
        footer: str = "",
        strict: bool = True,
    ):
        self.data = data
        self.fragments: dict[str, str] = {name: c.body for name, c in components.items()}
        self.fragments[HEADER_FRAGMENT] = header
        self.fragments[FOOTER_FRAGMENT] = footer

        self.env = DataEnvironment(
            loader=DictLoader(self.fragments),
            autoescape=True,
            undefined=StrictUndefined if strict else Undefined,
            keep_trailing_newline=True,
        )
        self.env.globals["fragment"] = self._fragment

    @property
    def names(self) -> set[str]:
        return set(self.fragments)

    def _fragment(self, name: str, value: Any = None) -> Markup:
        if name not in self.fragments:
            raise UnknownComponentError(name)
        template = self.env.get_template(name)
        return Markup(template.render(fragment_context(value)))

    def _render(self, source: str, name: str, context: dict[str, Any]) -> str:
        try:
            return self.env.from_string(source).render(context)
        except PagestitchError:
            raise
        except TemplateError as e:
            raise RenderError(f"Cannot render {name}: {e}") from e
        except RecursionError as e:
            raise RenderError(f"Cannot render {name}: fragment nesting too deep") from e
        except Exception as e:
            raise RenderError(f"Cannot render {name}: {e}") from e

    def render_document(self, source: str, name: str) -> str:
        """Render a composed page with the whole data tree as its context."""
        logger.debug("Rendering %s", name)
        return self._render(source, name, fragment_context(self.data.as_dict()))

    def render_component(self, component: Component) -> str:
        """Render a component with the data found at its preview path.

        Raises:
            DataPathError: If the preview path does not resolve.
        """
        value = self.data.get(component.data_path)
        logger.debug(
            "Rendering component %s with %s at %s",
            component.name,
            type(value).__name__,
            component.data_path,
        )
        return self._render(component.body, component.name, fragment_context(value))

    def render_wrapped(self, wrapper: str, html: str, name: str) -> str:
        """Place already-rendered HTML inside the wrapper scaffolding."""
        context = fragment_context(self.data.as_dict())
        context[WRAPPER_SLOT] = Markup(html)
        return self._render(wrapper, name, context)
