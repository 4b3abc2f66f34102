"""routing.py — Declarative route table matching on (method, path segments).

Part of the Prometheus dashboard API Lambda.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

__all__ = [
    "Route",
    "_match_route",
    "_split_path",
]


@dataclass(frozen=True)
class Route:
    """One entry of the route table.

    ``pattern`` is a tuple of literal segments and ``{name}`` placeholders;
    placeholder values are passed to ``handler`` as keyword arguments.
    """

    method: str
    pattern: Tuple[str, ...]
    handler: Callable[..., Dict[str, Any]]

    def match(self, method: str, segments: Sequence[str]) -> Optional[Dict[str, str]]:
        if method != self.method or len(segments) != len(self.pattern):
            return None
        params: Dict[str, str] = {}
        for expected, actual in zip(self.pattern, segments):
            if expected.startswith("{") and expected.endswith("}"):
                params[expected[1:-1]] = actual
            elif expected != actual:
                return None
        return params


def _split_path(path: str, prefixes: Sequence[str]) -> List[str]:
    """Strip the first matching prefix and return the non-empty segments."""
    for prefix in prefixes:
        if prefix and (path == prefix or path.startswith(prefix + "/")):
            path = path[len(prefix):]
            break
    return [segment for segment in path.split("/") if segment]


def _match_route(
    routes: Sequence[Route],
    method: str,
    segments: Sequence[str],
) -> Optional[Tuple[Route, Dict[str, str]]]:
    for route in routes:
        params = route.match(method, segments)
        if params is not None:
            return route, params
    return None
