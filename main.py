from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, TextIO

from config import Settings
from db import open_repo
from drive import SEPARATOR, MazeDrive, MazeItem, parse_path
from maze import PathNotFound, UnsupportedOperation, generate_maze
from paths import canonicalize

logger = logging.getLogger(__name__)

NOT_FOUND = "Path does not exist."
NO_RECURSION = "Recursive listing is not supported."


@dataclass(frozen=True)
class Command:
    """
    Normalized command object consumed by the shell.
    """

    verb: str
    args: list[str] = field(default_factory=list)


@dataclass
class ShellView:
    """
    UI-agnostic projection of the current location.
    """

    path: str
    pos: dict[str, int]
    available_moves: list[str]
    secret: str | None
    is_goal: bool


@dataclass
class ShellOutput:
    view: ShellView
    messages: list[str] = field(default_factory=list)
    items: list[dict[str, Any]] = field(default_factory=list)
    did_persist: bool = False


def maze_id_for(settings: Settings, seed: int) -> str:
    return f"maze-{settings.COLS}x{settings.ROWS}-{seed}"


def _is_absolute(path: str, drive: str) -> bool:
    return path.startswith((SEPARATOR, "/")) or path.lower().startswith(f"{drive.lower()}:")


def _split(path: str) -> list[str]:
    return [s for s in path.replace("/", SEPARATOR).split(SEPARATOR) if s]


class MazeShell:
    def __init__(self, *, drive: MazeDrive, repo: Any, session_id: str):
        self.drive = drive
        self.repo = repo
        self.session_id = session_id
        self._load_state()

    def _load_state(self) -> None:
        session = self.repo.get_session(self.session_id)
        if session is None:
            raise KeyError(f"Unknown session_id: {self.session_id}")
        self.maze_id = session["maze_id"]
        self._discovered = bool(
            self.repo.list_discoveries(maze_id=self.maze_id, limit=1, session_id=self.session_id)
        )
        path = session.get("path", "")
        # A stored path that no longer resolves falls back to the root.
        self._path = path if self.drive.item_exists(path) else ""

    def _persist(self) -> None:
        self.repo.save_session(session_id=self.session_id, path=self._path)

    def _target(self, arg: str | None) -> str:
        """Combine a user-supplied path with the current location."""
        if not arg:
            return self._path
        if _is_absolute(arg, self.drive.name):
            prefix = f"{self.drive.name}:"
            if arg.lower().startswith(prefix.lower()):
                arg = arg[len(prefix):]
            segments: list[str] = []
        else:
            segments = _split(self._path)
        for segment in _split(arg):
            if segment == "..":
                if segments:
                    segments.pop()
            elif segment != ".":
                segments.append(segment)
        return SEPARATOR.join(segments)

    def _make_view(self) -> ShellView:
        item = self.drive.get_item(self._path)
        moves = [child.direction.name.capitalize() for _, child in self.drive.get_child_items(self._path)]
        return ShellView(
            path=f"{self.drive.name}:{SEPARATOR}{self._path}",
            pos={"x": item.x, "y": item.y},
            available_moves=moves,
            secret=item.secret,
            is_goal=item.secret is not None,
        )

    def view(self) -> ShellView:
        return self._make_view()

    def _maybe_record(self, path: str, item: MazeItem) -> bool:
        if item.secret is None or self._discovered:
            return False
        tokens = parse_path(path, self.drive.name)
        self.repo.record_discovery(
            session_id=self.session_id,
            maze_id=self.maze_id,
            secret=item.secret,
            raw_steps=len(tokens),
            canonical_steps=len(canonicalize(tokens)),
        )
        self._discovered = True
        logger.info("Goal reached by session %s in %s raw steps", self.session_id, len(tokens))
        return True

    def handle(self, command: Command) -> ShellOutput:
        verb = (command.verb or "").strip().lower()
        args = command.args or []

        if verb in {"look", "pwd"}:
            view = self._make_view()
            return ShellOutput(view=view, messages=[view.path])

        if verb == "save":
            self._persist()
            return ShellOutput(view=self._make_view(), messages=["Session saved."], did_persist=True)

        recurse = any(a.lower() in {"-r", "-recurse", "--recurse"} for a in args)
        paths = [a for a in args if not a.startswith("-")]
        target = self._target(paths[0] if paths else None)

        if verb == "test":
            exists = self.drive.item_exists(target)
            return ShellOutput(view=self._make_view(), messages=[str(exists)])

        if verb in {"ls", "dir"}:
            try:
                children = self.drive.get_child_items(target, recurse=recurse)
            except UnsupportedOperation:
                return ShellOutput(view=self._make_view(), messages=[NO_RECURSION])
            except PathNotFound:
                return ShellOutput(view=self._make_view(), messages=[NOT_FOUND])
            items = [item.to_dict() for _, item in children]
            return ShellOutput(view=self._make_view(), items=items)

        if verb == "get":
            try:
                item = self.drive.get_item(target)
            except PathNotFound:
                return ShellOutput(view=self._make_view(), messages=[NOT_FOUND])
            did_persist = self._maybe_record(target, item)
            messages = [item.secret] if item.secret else []
            return ShellOutput(view=self._make_view(), messages=messages, items=[item.to_dict()], did_persist=did_persist)

        if verb == "cd":
            if not self.drive.item_exists(target):
                return ShellOutput(view=self._make_view(), messages=[NOT_FOUND])
            self._path = target
            self._persist()
            return ShellOutput(view=self._make_view(), did_persist=True)

        return ShellOutput(view=self._make_view(), messages=["Unknown command."])


def _parse_line(line: str) -> Command | None:
    parts = line.split()
    if not parts:
        return None
    return Command(verb=parts[0], args=parts[1:])


def _render(out: ShellOutput, stream: TextIO) -> None:
    for item in out.items:
        direction = item.get("direction", "")
        line = f"{direction:<6} x={item['x']:<4} y={item['y']:<4}"
        if item.get("secret"):
            line += f" secret={item['secret']}"
        print(line.rstrip(), file=stream)
    for message in out.messages:
        print(message, file=stream)


def run_repl(shell: MazeShell, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    while True:
        print(f"{shell.view().path}> ", end="", file=stdout, flush=True)
        line = stdin.readline()
        if not line:
            break
        command = _parse_line(line)
        if command is None:
            continue
        if command.verb.lower() in {"quit", "exit"}:
            break
        _render(shell.handle(command), stdout)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Explore a generated maze as a drive.")
    parser.add_argument("--handle", default="explorer")
    parser.add_argument("--db", help="session store path (.db for SQLite, otherwise JSON)")
    parser.add_argument("--seed", help="integer seed, or 'random'")
    parser.add_argument("--size", type=int, help="square maze size")
    opts = parser.parse_args(argv)

    overrides: dict[str, Any] = {}
    if opts.db:
        overrides["DB_PATH"] = opts.db
    if opts.seed:
        overrides["SEED"] = opts.seed
    if opts.size is not None:
        overrides["ROWS"] = overrides["COLS"] = opts.size
    settings = Settings(**overrides)
    logging.basicConfig(level=settings.LOG_LEVEL)

    seed = settings.resolved_seed()
    grid = generate_maze(settings.ROWS, settings.COLS, seed)
    drive = MazeDrive(grid, secret_template=settings.SECRET_TEMPLATE, name=settings.DRIVE_NAME)

    repo = open_repo(settings.DB_PATH)
    try:
        session = repo.get_or_create_session(opts.handle, maze_id_for(settings, seed))
        logger.info("Session %s for %s on %s", session["id"], opts.handle, session["maze_id"])
        run_repl(MazeShell(drive=drive, repo=repo, session_id=session["id"]))
    finally:
        repo.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
