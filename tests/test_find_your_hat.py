from pathlib import Path

import pytest

from find_your_hat import (
    Config,
    ConfigError,
    Game,
    Outcome,
    draw_text,
    main,
    new_maze,
    path_to_keys,
    read_config,
    render_rows,
    write_output_file,
)
from hatgen import (
    HAT_CHAR,
    HOLE_CHAR,
    PATH_CHAR,
    PLAYER_CHAR,
    build_maze,
    is_solvable,
    shortest_path,
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.txt"
    path.write_text(text, encoding="utf-8")
    return path


def test_read_config_with_defaults(tmp_path):
    config = read_config(_write(tmp_path, "# comment\nwidth=12\nHEIGHT = 9\n"))

    assert config == Config(
        width=12,
        height=9,
        density=30,
        max_attempts=100,
        seed=None,
        output_file=None,
    )


def test_read_config_all_keys(tmp_path):
    config = read_config(_write(
        tmp_path,
        "WIDTH=10\nHEIGHT=8\nDENSITY=15  # sparse\nMAX_ATTEMPTS=3\n"
        "SEED=42\nOUTPUT_FILE=out/field.txt\n",
    ))

    assert config.density == 15
    assert config.max_attempts == 3
    assert config.seed == 42
    assert config.output_file == Path("out/field.txt")


@pytest.mark.parametrize("text,fragment", [
    ("WIDTH=10\n", "HEIGHT"),
    ("WIDTH=ten\nHEIGHT=3\n", "WIDTH"),
    ("WIDTH=10\nHEIGHT=3\nCOLOR=red\n", "COLOR"),
    ("WIDTH=10\nHEIGHT 3\n", "KEY=VALUE"),
    ("WIDTH=0\nHEIGHT=3\n", "> 0"),
    ("WIDTH=5\nHEIGHT=3\nDENSITY=120\n", "DENSITY"),
    ("WIDTH=5\nHEIGHT=3\nMAX_ATTEMPTS=-1\n", "MAX_ATTEMPTS"),
])
def test_read_config_errors(tmp_path, text, fragment):
    with pytest.raises(ConfigError) as excinfo:
        read_config(_write(tmp_path, text))

    assert fragment in str(excinfo.value)


def test_read_config_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        read_config(tmp_path / "nope.txt")


def _corridor_game() -> Game:
    # P░^
    # ░O░
    return Game(build_maze(2, 3, start=(0, 0), goal=(2, 0), holes=[(1, 1)]))


def test_game_finds_hat_and_leaves_a_path():
    game = _corridor_game()

    assert game.step("d") is Outcome.PLAYING
    assert game.grid.get(0, 0) == PATH_CHAR
    assert game.grid.get(1, 0) == PLAYER_CHAR

    assert game.step("D") is Outcome.FOUND_HAT
    assert game.over
    assert game.player.position == (2, 0)
    assert game.grid.get(2, 0) == HAT_CHAR


def test_game_falls_in_hole():
    game = _corridor_game()
    game.step("D")

    assert game.step("S") is Outcome.FELL_IN_HOLE
    assert game.grid.get(1, 1) == HOLE_CHAR


def test_game_out_of_bounds():
    game = _corridor_game()

    assert game.step("W") is Outcome.OUT_OF_BOUNDS
    assert game.player.position == (0, -1)


def test_game_ignores_unknown_keys_and_moves_after_game_over():
    game = _corridor_game()

    assert game.step("x") is Outcome.PLAYING
    assert game.player.position == (0, 0)
    assert game.grid.get(0, 0) == PLAYER_CHAR

    game.step("A")
    assert game.step("D") is Outcome.OUT_OF_BOUNDS
    assert game.player.position == (-1, 0)


def test_game_hint_follows_shortest_path():
    game = _corridor_game()

    assert game.hint() == [(0, 0), (1, 0), (2, 0)]
    game.step("W")
    assert game.hint() is None


def test_path_to_keys():
    assert path_to_keys([(1, 1)]) == ""
    assert path_to_keys([(1, 1), (1, 0), (2, 0), (2, 1), (1, 1)]) == "WDSA"

    with pytest.raises(ValueError):
        path_to_keys([(0, 0), (1, 1)])


def test_render_rows_with_marks():
    maze = build_maze(2, 3, start=(0, 0), goal=(2, 1), holes=[(1, 0)])

    assert render_rows(maze.grid) == ["PO░", "░░^"]
    assert render_rows(maze.grid, marks={(1, 1): "*"}) == ["PO░", "░*^"]


def test_write_output_file(tmp_path):
    maze = build_maze(2, 3, start=(0, 0), goal=(2, 1), holes=[(1, 0)])
    path = tmp_path / "nested" / "field.txt"

    keys = path_to_keys(shortest_path(maze))
    write_output_file(path, maze, keys)

    assert path.read_text(encoding="utf-8") == (
        "PO░\n░░^\n\n0,0\n2,1\nSDD\n"
    )


def test_new_maze_is_seeded_and_written(tmp_path):
    config = Config(
        width=8,
        height=8,
        density=0,
        max_attempts=500,
        seed=3,
        output_file=tmp_path / "out.txt",
    )

    a = new_maze(config, config.seed)
    b = new_maze(config, config.seed)

    assert a.grid.rows() == b.grid.rows()
    assert is_solvable(a)
    lines = config.output_file.read_text(encoding="utf-8").splitlines()
    assert lines[:8] == render_rows(b.grid)
    assert lines[9] == f"{b.start[0]},{b.start[1]}"
    assert lines[10] == f"{b.goal[0]},{b.goal[1]}"


def test_main_usage(capsys):
    assert main(["find_your_hat.py"]) == 2
    assert "Usage" in capsys.readouterr().err


def test_main_bad_config(tmp_path, capsys):
    path = _write(tmp_path, "WIDTH=abc\nHEIGHT=3\n")

    assert main(["find_your_hat.py", str(path)]) == 1
    assert "Error: Invalid integer for WIDTH" in capsys.readouterr().err


def test_main_reports_unsolvable_configuration(tmp_path, capsys):
    path = _write(tmp_path, "WIDTH=6\nHEIGHT=1\nDENSITY=0\nMAX_ATTEMPTS=2\n")

    assert main(["find_your_hat.py", str(path)]) == 1
    assert "No solvable" in capsys.readouterr().err


class _RecordingWindow:
    def __init__(self, rows: int, cols: int) -> None:
        self.size = (rows, cols)
        self.calls = []

    def getmaxyx(self):
        return self.size

    def addstr(self, y, x, text, attr=0):
        self.calls.append((y, x, text, attr))


def test_draw_text_clips_to_window():
    window = _RecordingWindow(3, 10)

    draw_text(window, 1, 4, "find your hat", 7)
    draw_text(window, 3, 0, "below")
    draw_text(window, 0, -1, "left")

    assert window.calls == [(1, 4, "find ", 7)]
