"""Component reachability and reference-cycle analysis.

Both work on the pre-rewrite text only: once tags are rewritten into
fragment invocations the literal ``<name>`` tokens searched for here are gone.
"""

from collections.abc import Iterable, Iterator

from .composer import find_tag_references
from .errors import CycleError
from .models import Component


def iter_reachability(
    entries: Iterable[str], components: dict[str, Component]
) -> Iterator[frozenset[str]]:
    """Yield the used-set after seeding and after every pass that grows it.

    The seed holds every component tagged directly in an entry point. Each
    pass scans the raw body of every used component for tags of components
    not yet used. The sets only grow and the vertex set is finite, so this
    yields at most ``len(components) + 1`` times.
    """
    names = set(components)
    used: set[str] = set()
    for text in entries:
        used |= find_tag_references(text, names)
    yield frozenset(used)

    while True:
        added: set[str] = set()
        for name in sorted(used):
            added |= find_tag_references(components[name].raw_body, names - used)
        added -= used
        if not added:
            return
        used |= added
        yield frozenset(used)


def find_used_components(
    entries: Iterable[str], components: dict[str, Component]
) -> set[str]:
    """Names of components transitively reachable from the entry points."""
    used: frozenset[str] = frozenset()
    for used in iter_reachability(entries, components):
        pass
    return set(used)


def find_unused_components(
    entries: Iterable[str], components: dict[str, Component]
) -> list[Component]:
    """Components no entry point reaches, sorted by name."""
    used = find_used_components(entries, components)
    return [components[name] for name in sorted(components) if name not in used]


def find_cycle(components: dict[str, Component]) -> list[str] | None:
    """Return one reference cycle as a closed path of names, or None."""
    visiting: list[str] = []
    done: set[str] = set()

    def visit(name: str) -> list[str] | None:
        if name in visiting:
            return visiting[visiting.index(name) :] + [name]
        if name in done:
            return None
        visiting.append(name)
        for ref in sorted(components[name].references):
            if ref in components:
                cycle = visit(ref)
                if cycle:
                    return cycle
        visiting.pop()
        done.add(name)
        return None

    for name in sorted(components):
        cycle = visit(name)
        if cycle:
            return cycle
    return None


def check_cycles(components: dict[str, Component]) -> None:
    """Raise CycleError if any component can reach itself.

    Raises:
        CycleError: Naming the first cycle found.
    """
    cycle = find_cycle(components)
    if cycle:
        raise CycleError(cycle)
