from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from maze import DIRECTIONS, Direction, Grid, PathNotFound, Position, UnsupportedOperation
from paths import DEFAULT_SECRET_TEMPLATE, derive_goal_secret, navigate

SEPARATOR = "\\"
_SPLIT = re.compile(r"[\\/]")


@dataclass(frozen=True)
class MazeItem:
    """
    Record written back to the host for a cell or one of its neighbors.
    """

    x: int
    y: int
    direction: Direction | None = None
    secret: str | None = None

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {"x": self.x, "y": self.y, "secret": self.secret}
        if self.direction is not None:
            record["direction"] = self.direction.name.capitalize()
        return record


def _segments(text: str, drive: str) -> list[str]:
    text = text or ""
    prefix = f"{drive}:"
    if text[: len(prefix)].lower() == prefix.lower():
        text = text[len(prefix):]
    return _SPLIT.split(text)


def _token(segment: str) -> Direction | None:
    return Direction.__members__.get(segment.strip().upper())


def parse_path(text: str, drive: str = "Maze") -> tuple[Direction, ...]:
    """Turn ``up\\Left\\\\down`` into direction tokens. Empty segments are skipped."""
    tokens: list[Direction] = []
    for segment in _segments(text, drive):
        if not segment:
            continue
        direction = _token(segment)
        if direction is None:
            raise PathNotFound(f"Unrecognized path segment: {segment!r}")
        tokens.append(direction)
    return tuple(tokens)


def is_valid_path(text: str, drive: str = "Maze") -> bool:
    return all(_token(s) is not None for s in _segments(text, drive) if s)


def join_path(path: str, direction: Direction) -> str:
    name = direction.name.capitalize()
    if not path:
        return name
    return f"{path.rstrip(SEPARATOR + '/')}{SEPARATOR}{name}"


class MazeDrive:
    """Path-based view of one generated maze, rooted at the origin cell."""

    def __init__(self, grid: Grid, *, secret_template: str = DEFAULT_SECRET_TEMPLATE, name: str = "Maze"):
        self.grid = grid
        self.secret_template = secret_template
        self.name = name

    def default_drives(self) -> list[dict[str, str]]:
        return [{"name": self.name, "root": ""}]

    def is_valid_path(self, path: str) -> bool:
        return is_valid_path(path, self.name)

    def resolve(self, path: str) -> Position:
        return navigate(self.grid, parse_path(path, self.name))

    def item_exists(self, path: str) -> bool:
        try:
            self.resolve(path)
        except PathNotFound:
            return False
        return True

    # Every reachable cell can be entered, dead ends included.
    is_item_container = item_exists

    def get_item(self, path: str) -> MazeItem:
        tokens = parse_path(path, self.name)
        pos = navigate(self.grid, tokens)
        secret = derive_goal_secret(self.grid, pos, tokens, self.secret_template)
        return MazeItem(x=pos.x, y=pos.y, secret=secret)

    def get_child_items(self, path: str, recurse: bool = False) -> list[tuple[str, MazeItem]]:
        if recurse:
            raise UnsupportedOperation("Recursive listing is not supported. Walk the maze yourself.")
        pos = self.resolve(path)
        mask = self.grid.open_directions(pos)
        children: list[tuple[str, MazeItem]] = []
        for direction in DIRECTIONS:
            if direction not in mask:
                continue
            nxt = pos.step(direction)
            children.append((join_path(path, direction), MazeItem(x=nxt.x, y=nxt.y, direction=direction)))
        return children
