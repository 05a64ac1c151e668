import io

import pytest
from pydantic import ValidationError

import main
from main import NO_RECURSION, NOT_FOUND, Command, MazeShell


@pytest.fixture
def session(repo):
    return repo.get_or_create_session("theseus", "maze-2x2-test")


@pytest.fixture
def shell(small_drive, repo, session):
    return MazeShell(drive=small_drive, repo=repo, session_id=session["id"])


def test_new_shell_starts_at_origin(shell):
    view = shell.view()
    assert view.pos == {"x": 0, "y": 0}
    assert view.path == "Maze:\\"
    assert view.available_moves == ["Down", "Right"]
    assert view.secret is None and not view.is_goal


def test_cd_moves_and_persists(shell, repo, session):
    out = shell.handle(Command(verb="cd", args=["Right"]))
    assert out.did_persist
    assert out.view.pos == {"x": 1, "y": 0}
    assert repo.get_session(session["id"])["path"] == "Right"

    out = shell.handle(Command(verb="cd", args=["Down"]))
    assert out.view.is_goal
    assert out.view.path == "Maze:\\Right\\Down"


def test_cd_to_missing_path_keeps_location(shell):
    out = shell.handle(Command(verb="cd", args=["Up"]))
    assert out.messages == [NOT_FOUND]
    assert not out.did_persist
    assert out.view.pos == {"x": 0, "y": 0}


def test_cd_parent_and_absolute(shell):
    shell.handle(Command(verb="cd", args=["Right\\Down"]))
    out = shell.handle(Command(verb="cd", args=[".."]))
    assert out.view.pos == {"x": 1, "y": 0}

    out = shell.handle(Command(verb="cd", args=["Maze:\\Down"]))
    assert out.view.pos == {"x": 0, "y": 1}

    out = shell.handle(Command(verb="cd", args=["\\"]))
    assert out.view.pos == {"x": 0, "y": 0}


def test_ls_lists_neighbors(shell):
    out = shell.handle(Command(verb="ls", args=[]))
    assert [item["direction"] for item in out.items] == ["Down", "Right"]

    out = shell.handle(Command(verb="ls", args=["Down"]))
    assert out.items == [{"x": 0, "y": 0, "secret": None, "direction": "Up"}]


def test_ls_recursive_is_rejected(shell):
    out = shell.handle(Command(verb="ls", args=["-r"]))
    assert out.messages == [NO_RECURSION]
    assert out.items == []


def test_ls_missing_path(shell):
    out = shell.handle(Command(verb="ls", args=["Left"]))
    assert out.messages == [NOT_FOUND]


def test_test_command(shell):
    assert shell.handle(Command(verb="test", args=["Right\\Down"])).messages == ["True"]
    assert shell.handle(Command(verb="test", args=["Up"])).messages == ["False"]


def test_get_at_goal_records_discovery_once(shell, repo, session):
    out = shell.handle(Command(verb="get", args=["Right\\Left\\Right\\Down"]))
    assert out.did_persist
    secret = out.items[0]["secret"]
    assert out.messages == [secret]

    again = shell.handle(Command(verb="get", args=["Right\\Down"]))
    assert again.items[0]["secret"] == secret
    assert not again.did_persist

    found = repo.list_discoveries(maze_id="maze-2x2-test")
    assert len(found) == 1
    assert found[0]["session_id"] == session["id"]
    assert found[0]["secret"] == secret
    assert (found[0]["raw_steps"], found[0]["canonical_steps"]) == (4, 2)


def test_get_missing_path(shell):
    out = shell.handle(Command(verb="get", args=["Up"]))
    assert out.messages == [NOT_FOUND]


def test_session_resumes_saved_location(small_drive, repo, session, shell):
    shell.handle(Command(verb="cd", args=["Down"]))
    resumed = MazeShell(drive=small_drive, repo=repo, session_id=session["id"])
    assert resumed.view().pos == {"x": 0, "y": 1}


def test_unknown_session_raises(small_drive, repo):
    with pytest.raises(KeyError):
        MazeShell(drive=small_drive, repo=repo, session_id="missing")


def test_unknown_command(shell):
    out = shell.handle(Command(verb="warp", args=["now"]))
    assert out.messages == ["Unknown command."]


def test_save_command(shell):
    out = shell.handle(Command(verb="save"))
    assert out.did_persist is True


def test_repl_runs_commands_until_quit(shell):
    stdin = io.StringIO("cd Right\n\nls\nquit\ncd Down\n")
    stdout = io.StringIO()
    main.run_repl(shell, stdin=stdin, stdout=stdout)
    text = stdout.getvalue()
    assert "Maze:\\Right> " in text
    assert "Left" in text
    assert shell.view().pos == {"x": 1, "y": 0}


def test_main_entry_point(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("ls\nget\n"))
    db_path = tmp_path / "cli.json"
    assert main.main(["--db", str(db_path), "--size", "3", "--seed", "11", "--handle", "ariadne"]) == 0
    assert "x=" in capsys.readouterr().out
    assert db_path.exists()


def test_resumed_session_does_not_record_goal_twice(small_drive, repo, session, shell):
    assert shell.handle(Command(verb="get", args=["Right\\Down"])).did_persist

    resumed = MazeShell(drive=small_drive, repo=repo, session_id=session["id"])
    out = resumed.handle(Command(verb="get", args=["Down\\Up\\Right\\Down"]))
    assert out.items[0]["secret"] is not None
    assert not out.did_persist
    assert len(repo.list_discoveries(maze_id="maze-2x2-test")) == 1


def test_main_rejects_zero_size(tmp_path):
    with pytest.raises(ValidationError):
        main.main(["--db", str(tmp_path / "cli.json"), "--size", "0"])
