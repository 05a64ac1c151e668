from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import IntFlag

logger = logging.getLogger(__name__)


class MazeError(Exception):
    """Base class for maze errors."""


class InvalidDimensionsError(MazeError, ValueError):
    pass


class PathNotFound(MazeError, LookupError):
    """The path denotes an edge (or token) that does not exist in the maze."""


class UnsupportedOperation(MazeError):
    pass


class Direction(IntFlag):
    UP = 1
    DOWN = 2
    LEFT = 4
    RIGHT = 8

    @property
    def delta(self) -> tuple[int, int]:
        return _DELTAS[self]

    @property
    def opposite(self) -> "Direction":
        return _OPPOSITES[self]

    @property
    def code(self) -> int:
        return _CODES[self]


# Iteration order for listings and hashing codes.
DIRECTIONS: tuple[Direction, ...] = (Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT)
NO_DIRECTIONS = Direction(0)

_DELTAS = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}
_OPPOSITES = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}
_CODES = {d: i for i, d in enumerate(DIRECTIONS)}


@dataclass(frozen=True)
class Position:
    x: int
    y: int

    def step(self, direction: Direction) -> "Position":
        dx, dy = direction.delta
        return Position(x=self.x + dx, y=self.y + dy)


ORIGIN = Position(0, 0)


def _check_dimensions(rows: int, cols: int) -> None:
    if rows <= 0 or cols <= 0:
        raise InvalidDimensionsError(f"Maze dimensions must be positive, got {rows}x{cols}")


@dataclass(frozen=True)
class Grid:
    """Open-direction masks for a rows x cols maze, stored flat at y * cols + x."""

    rows: int
    cols: int
    masks: tuple[Direction, ...]

    def __post_init__(self) -> None:
        _check_dimensions(self.rows, self.cols)
        if len(self.masks) != self.rows * self.cols:
            raise InvalidDimensionsError(
                f"Expected {self.rows * self.cols} cell masks, got {len(self.masks)}"
            )

    @property
    def goal(self) -> Position:
        return Position(x=self.cols - 1, y=self.rows - 1)

    def in_bounds(self, pos: Position) -> bool:
        return 0 <= pos.x < self.cols and 0 <= pos.y < self.rows

    def index(self, pos: Position) -> int:
        if not self.in_bounds(pos):
            raise ValueError(f"Out of bounds position: {pos}")
        return pos.y * self.cols + pos.x

    def open_directions(self, pos: Position) -> Direction:
        return self.masks[self.index(pos)]

    def is_open(self, pos: Position, direction: Direction) -> bool:
        return direction in self.open_directions(pos)

    def neighbors(self, pos: Position) -> list[tuple[Direction, Position]]:
        mask = self.open_directions(pos)
        return [(d, pos.step(d)) for d in DIRECTIONS if d in mask]

    def positions(self):
        for y in range(self.rows):
            for x in range(self.cols):
                yield Position(x=x, y=y)

    def open_edge_count(self) -> int:
        # Each edge is counted from both endpoints.
        total = sum(bin(int(mask)).count("1") for mask in self.masks)
        return total // 2

    def to_bytes(self) -> bytes:
        return bytes(int(mask) for mask in self.masks)


class DisjointSetForest:
    """Union-find over flattened cell indices, with path compression and union by rank."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, u: int) -> int:
        root = u
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[u] != root:
            self.parent[u], u = root, self.parent[u]
        return root

    def union(self, a: int, b: int) -> bool:
        u, v = self.find(a), self.find(b)
        if u == v:
            return False
        if self.rank[u] > self.rank[v]:
            self.parent[v] = u
        else:
            self.parent[u] = v
            if self.rank[u] == self.rank[v]:
                self.rank[v] += 1
        return True


def _shuffle(items: list, rng: random.Random) -> None:
    # Fisher-Yates, walking from the last index down.
    for n in range(len(items) - 1, 0, -1):
        k = rng.randrange(n + 1)
        items[k], items[n] = items[n], items[k]


def generate_maze(rows: int, cols: int, seed: int) -> Grid:
    """Build a perfect maze with randomized Kruskal's algorithm.

    Every internal adjacency is a candidate exactly once, taken from the cell
    with the larger coordinate (UP or LEFT). Candidates are shuffled with a
    generator seeded by ``seed`` and opened whenever they join two distinct
    sets, so the result is a spanning tree with ``rows * cols - 1`` open edges.
    """
    _check_dimensions(rows, cols)
    rng = random.Random(seed)
    masks = [NO_DIRECTIONS] * (rows * cols)
    forest = DisjointSetForest(rows * cols)

    candidates: list[tuple[Position, Direction]] = []
    for y in range(rows):
        for x in range(cols):
            if y > 0:
                candidates.append((Position(x, y), Direction.UP))
            if x > 0:
                candidates.append((Position(x, y), Direction.LEFT))
    _shuffle(candidates, rng)

    for src, direction in candidates:
        dst = src.step(direction)
        src_idx = src.y * cols + src.x
        dst_idx = dst.y * cols + dst.x
        if forest.union(src_idx, dst_idx):
            masks[src_idx] |= direction
            masks[dst_idx] |= direction.opposite

    grid = Grid(rows=rows, cols=cols, masks=tuple(masks))
    logger.debug(
        "Maze generated rows=%s cols=%s seed=%s candidates=%s open_edges=%s",
        rows,
        cols,
        seed,
        len(candidates),
        grid.open_edge_count(),
    )
    return grid
