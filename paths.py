from __future__ import annotations

import hashlib
from typing import Iterable, Sequence

from maze import DIRECTIONS, ORIGIN, Direction, Grid, PathNotFound, Position

DEFAULT_SECRET_TEMPLATE = "MAZE{{{code}}}"


def canonicalize(path: Iterable[Direction]) -> tuple[Direction, ...]:
    """Cancel immediately adjacent opposite moves, e.g. UP, DOWN -> ()."""
    stack: list[Direction] = []
    for direction in path:
        if stack and stack[-1] == direction.opposite:
            stack.pop()
        else:
            stack.append(direction)
    return tuple(stack)


def _is_step(token: object) -> bool:
    return isinstance(token, Direction) and token in DIRECTIONS


def navigate(grid: Grid, path: Iterable[Direction]) -> Position:
    """Walk ``path`` from the origin, following only open edges.

    The raw path is checked step by step, so detours that retrace an open edge
    are legal. Raises PathNotFound on the first closed edge.
    """
    pos = ORIGIN
    for step, direction in enumerate(path):
        if not _is_step(direction) or direction not in grid.open_directions(pos):
            raise PathNotFound(f"No {getattr(direction, 'name', direction)} edge at {pos} (step {step})")
        pos = pos.step(direction)
    return pos


def _fold_digest(digest: bytes) -> int:
    acc = 0
    for i, byte in enumerate(digest):
        acc ^= byte << (8 * (i % 4))
    return acc


def goal_code(path: Sequence[Direction]) -> str:
    canonical = canonicalize(path)
    digest = hashlib.sha256(bytes(d.code for d in canonical)).digest()
    return f"{_fold_digest(digest):08X}"


def derive_goal_secret(
    grid: Grid,
    pos: Position,
    path: Sequence[Direction],
    template: str = DEFAULT_SECRET_TEMPLATE,
) -> str | None:
    if pos != grid.goal:
        return None
    return template.format(code=goal_code(path))
