"""Authority graph utilities for role hierarchy expansion."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class AuthorityGraph:
    """Directed graph of authorities where an edge ``a -> b`` means "a implies b".

    Nodes are plain authority names (``GROUP_*``, ``ROLE_*``, ...). Cycles are
    allowed; a cycle simply makes its members imply each other.
    """

    def __init__(self, edges: Iterable[tuple[str, str]] = ()) -> None:
        self._adj: dict[str, list[str]] = {}
        for source, target in edges:
            self.add_edge(source, target)

    @classmethod
    def from_mapping(cls, hierarchy: Mapping[str, Iterable[str]]) -> AuthorityGraph:
        """Build a graph from ``{authority: [implied, ...]}``."""
        return cls((source, target) for source, targets in hierarchy.items() for target in targets)

    def add_edge(self, source: str, target: str) -> None:
        implied = self._adj.setdefault(source, [])
        if target not in implied:
            implied.append(target)

    def implied_by(self, authority: str) -> list[str]:
        return list(self._adj.get(authority, []))

    def reachable(self, start: Iterable[str]) -> set[str]:
        """Return every authority reachable from ``start``, including ``start`` itself.

        Breadth-first closure; each node is expanded at most once, so the
        traversal terminates on cyclic hierarchies. O(V+E) time.
        """
        seen: set[str] = set()
        queue: deque[str] = deque()
        for authority in start:
            if authority not in seen:
                seen.add(authority)
                queue.append(authority)
        while queue:
            node = queue.popleft()
            for implied in self._adj.get(node, []):
                if implied not in seen:
                    seen.add(implied)
                    queue.append(implied)
        return seen


def granted_role_names(graph: AuthorityGraph, direct: Iterable[str], prefix: str) -> list[str]:
    """Flatten the reachable authorities and keep only names starting with ``prefix``."""
    return sorted(name for name in graph.reachable(direct) if name.startswith(prefix))
