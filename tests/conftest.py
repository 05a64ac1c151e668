import importlib
from collections import deque

import pytest

from maze import ORIGIN


def import_required(module_name: str):
    """
    Import a project module with a clearer failure message than ModuleNotFoundError.
    """
    try:
        return importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        pytest.fail(f"Required module '{module_name}.py' could not be imported. Original error: {e}")


@pytest.fixture
def maze_module():
    return import_required("maze")


@pytest.fixture
def db_module():
    return import_required("db")


@pytest.fixture
def small_grid(maze_module):
    """
    2x2 maze with edges (0,0)-Right-(1,0), (0,0)-Down-(0,1) and (1,0)-Down-(1,1).
    The goal (1,1) is reached by Right, Down.
    """
    D = maze_module.Direction
    return maze_module.Grid(
        rows=2,
        cols=2,
        masks=(D.RIGHT | D.DOWN, D.LEFT | D.DOWN, D.UP, D.UP),
    )


@pytest.fixture
def generated_grid(maze_module):
    return maze_module.generate_maze(rows=9, cols=9, seed=2024)


@pytest.fixture
def small_drive(small_grid):
    drive = import_required("drive")
    return drive.MazeDrive(small_grid)


@pytest.fixture(params=["sessions.json", "sessions.db"])
def repo(request, tmp_path, db_module):
    store = db_module.open_repo(tmp_path / request.param)
    yield store
    store.close()


def path_to_goal(grid):
    """Directions along the unique tree path from the origin to the goal."""
    start = ORIGIN
    prev = {start: None}
    q = deque([start])
    while q:
        cur = q.popleft()
        if cur == grid.goal:
            break
        for direction, nxt in grid.neighbors(cur):
            if nxt in prev:
                continue
            prev[nxt] = (cur, direction)
            q.append(nxt)
    assert grid.goal in prev, "goal must be reachable"

    dirs = []
    cur = grid.goal
    while prev[cur] is not None:
        cur, direction = prev[cur]
        dirs.append(direction)
    dirs.reverse()
    return dirs
