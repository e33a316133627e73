"""Property Sorter - group action properties into dependency levels."""

from collections.abc import Mapping

from piece_agent.domain.entities.piece import PieceProperty
from piece_agent.domain.errors import CyclicDependencyError


def _dependencies(prop: PieceProperty, props: Mapping[str, PieceProperty]) -> list[str]:
    """Refreshers that name a declared property. Others (e.g. auth) are not edges."""
    return [name for name in prop.refreshers if name in props]


def sort_properties_by_dependencies(props: Mapping[str, PieceProperty]) -> dict[int, list[str]]:
    """Map depth -> property names, declaration order kept within a depth.

    A property with no declared dependencies sits at depth 0; otherwise its
    depth is one more than the deepest property it refreshes on.

    Raises:
        CyclicDependencyError: Refreshers form a cycle.

    """
    depths: dict[str, int] = {}
    visiting: list[str] = []

    def depth_of(name: str) -> int:
        if name in depths:
            return depths[name]
        if name in visiting:
            raise CyclicDependencyError(visiting[visiting.index(name):] + [name])
        visiting.append(name)
        deps = _dependencies(props[name], props)
        depth = 1 + max(depth_of(dep) for dep in deps) if deps else 0
        visiting.pop()
        depths[name] = depth
        return depth

    levels: dict[int, list[str]] = {}
    for name in props:
        levels.setdefault(depth_of(name), []).append(name)
    return dict(sorted(levels.items()))
