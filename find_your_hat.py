import curses
import enum
import logging
import random
import sys
from dataclasses import dataclass
from pathlib import Path
from hatgen import (
    HAT_CHAR,
    HOLE_CHAR,
    PATH_CHAR,
    PLAYER_CHAR,
    Agent,
    Coord,
    Grid,
    HatGenError,
    Maze,
    generate_solvable,
    is_in_hole,
    is_on_goal,
    is_out_of_bounds,
    shortest_path,
)
from typing import (
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
)


HINT_CHAR = "·"

REQUIRED_KEYS = {"WIDTH", "HEIGHT"}
KNOWN_KEYS = REQUIRED_KEYS | {"DENSITY", "MAX_ATTEMPTS", "SEED", "OUTPUT_FILE"}

KEY_MOVES: Mapping[str, Callable[[Agent], None]] = {
    "W": Agent.up,
    "A": Agent.left,
    "S": Agent.down,
    "D": Agent.right,
}


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    """Parsed configuration for field generation."""

    width: int
    height: int
    density: int
    max_attempts: int
    seed: Optional[int]
    output_file: Optional[Path]


class ConfigError(ValueError):
    """Configuration and validation error."""

    pass


class Outcome(enum.Enum):
    """How a game session stands after the latest move."""

    PLAYING = "playing"
    OUT_OF_BOUNDS = "out_of_bounds"
    FELL_IN_HOLE = "fell_in_hole"
    FOUND_HAT = "found_hat"


MESSAGES: Mapping[Outcome, str] = {
    Outcome.PLAYING: "Move with WASD",
    Outcome.OUT_OF_BOUNDS: "Player out of bounds",
    Outcome.FELL_IN_HOLE: "Sorry, you fell down a hole.",
    Outcome.FOUND_HAT: "Congrats, you found your hat.",
}


def parse_int(value: str, *, key: str) -> int:
    """Parse an integer from a config value."""

    try:
        return int(value.strip())
    except ValueError as exc:
        msg = f"Invalid integer for {key}: {value!r}"
        raise ConfigError(msg) from exc


def read_config(path: Path) -> Config:
    """Read and validate the configuration file."""

    raw: Dict[str, str] = {}
    try:
        with path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                stripped = line.split("#", 1)[0].strip()
                if not stripped:
                    continue
                if "=" not in stripped:
                    raise ConfigError(
                        f"Bad syntax at\n"
                        f"line {line_no}: {line!r} (expected KEY=VALUE)"
                    )
                k, v = stripped.split("=", 1)
                key = k.strip().upper()
                if key not in KNOWN_KEYS:
                    raise ConfigError(
                        f"Unknown config key at line {line_no}: {key!r}"
                    )
                raw[key] = v.strip()
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except OSError as exc:
        raise ConfigError(f"Could not read"
                          f" config file: {path}: {exc}") from exc

    missing = sorted(REQUIRED_KEYS - set(raw.keys()))
    if missing:
        raise ConfigError(
            f"Missing required config keys: {', '.join(missing)}"
        )

    width = parse_int(raw["WIDTH"], key="WIDTH")
    height = parse_int(raw["HEIGHT"], key="HEIGHT")
    density = parse_int(raw.get("DENSITY", "30"), key="DENSITY")
    max_attempts = parse_int(raw.get("MAX_ATTEMPTS", "100"),
                             key="MAX_ATTEMPTS")
    seed = None
    if raw.get("SEED"):
        seed = parse_int(raw["SEED"], key="SEED")
    output_file = None
    if raw.get("OUTPUT_FILE"):
        output_file = Path(raw["OUTPUT_FILE"]).expanduser()

    if width <= 0 or height <= 0:
        raise ConfigError("WIDTH and HEIGHT must be > 0")
    if not 0 <= density <= 100:
        raise ConfigError("DENSITY must be between 0 and 100")
    if max_attempts < 0:
        raise ConfigError("MAX_ATTEMPTS must be >= 0")

    return Config(
        width=width,
        height=height,
        density=density,
        max_attempts=max_attempts,
        seed=seed,
        output_file=output_file,
    )


class Game:
    """A field and the player walking it."""

    maze: Maze
    player: Agent
    outcome: Outcome

    def __init__(self, maze: Maze) -> None:
        self.maze = maze
        self.player = Agent(*maze.start)
        self.outcome = Outcome.PLAYING
        self.mark_player()

    @property
    def grid(self) -> Grid:
        return self.maze.grid

    @property
    def over(self) -> bool:
        return self.outcome is not Outcome.PLAYING

    def mark_path(self) -> None:
        self.grid.set(self.player.x, self.player.y, PATH_CHAR)

    def mark_player(self) -> None:
        self.grid.set(self.player.x, self.player.y, PLAYER_CHAR)

    def check(self) -> Outcome:
        """Evaluate the end conditions for the current position."""

        pos = self.player.position
        if is_out_of_bounds(self.grid, pos):
            return Outcome.OUT_OF_BOUNDS
        if is_in_hole(self.grid, pos):
            return Outcome.FELL_IN_HOLE
        if is_on_goal(self.grid, pos):
            return Outcome.FOUND_HAT
        return Outcome.PLAYING

    def step(self, key: str) -> Outcome:
        """Apply one W/A/S/D key; other keys leave the player in place."""

        if self.over:
            return self.outcome

        move = KEY_MOVES.get(key.upper())
        if move is None:
            return self.outcome

        self.mark_path()
        move(self.player)
        self.outcome = self.check()
        if self.outcome is Outcome.PLAYING:
            self.mark_player()
        else:
            logger.info("Game over at %s: %s",
                        self.player.position, self.outcome.value)
        return self.outcome

    def hint(self) -> Optional[List[Coord]]:
        if self.over:
            return None
        return shortest_path(self.maze, self.player.position)


def path_to_keys(path: Sequence[Coord]) -> str:
    """Convert a coordinate path into W/A/S/D keys."""

    if len(path) < 2:
        return ""

    out: List[str] = []
    for (x0, y0), (x1, y1) in zip(path, path[1:]):
        dx = x1 - x0
        dy = y1 - y0
        if dx == 0 and dy == -1:
            out.append("W")
        elif dx == 0 and dy == 1:
            out.append("S")
        elif dx == 1 and dy == 0:
            out.append("D")
        elif dx == -1 and dy == 0:
            out.append("A")
        else:
            raise ValueError("Non-adjacent steps in path")
    return "".join(out)


def render_rows(
    grid: Grid,
    *,
    marks: Optional[Dict[Coord, str]] = None,
) -> List[str]:
    """Render the field as text, overlaying single-character marks."""

    marks = marks or {}
    lines: List[str] = []
    for y in range(grid.height):
        row: List[str] = []
        for x in range(grid.width):
            m = marks.get((x, y))
            if m is not None and len(m) == 1:
                row.append(m)
            else:
                row.append(str(grid.get(x, y)))
        lines.append("".join(row))
    return lines


def write_output_file(path: Path, maze: Maze, keys: str) -> None:
    """Write the field, its start/hat coordinates and a solution."""

    lines: List[str] = render_rows(maze.grid)
    lines.append("")
    lines.append(f"{maze.start[0]},{maze.start[1]}")
    lines.append(f"{maze.goal[0]},{maze.goal[1]}")
    lines.append(keys)

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def new_maze(config: Config, seed: Optional[int]) -> Maze:
    """Generate a field for `config`, writing it out if requested."""

    maze = generate_solvable(
        config.height,
        config.width,
        config.density,
        max_attempts=config.max_attempts,
        rng=random.Random(seed),
    )
    if config.output_file is not None:
        path = shortest_path(maze)
        keys = path_to_keys(path) if path is not None else ""
        write_output_file(config.output_file, maze, keys)
    return maze


def draw_text(
    stdscr: "curses.window", y: int, x: int, text: str, attr: int = 0
) -> None:
    """Draw `text` at (y, x), clipped to the window; off-screen text is dropped."""

    max_y, max_x = stdscr.getmaxyx()
    if not (0 <= y < max_y and 0 <= x < max_x):
        return
    try:
        stdscr.addstr(y, x, text[: max(0, max_x - x - 1)], attr)
    except curses.error:
        return


def _color_attrs() -> Dict[str, int]:
    if not curses.has_colors():
        return {}
    pairs = [
        (HOLE_CHAR, curses.COLOR_BLACK, curses.COLOR_RED),
        (HAT_CHAR, curses.COLOR_RED, curses.COLOR_BLACK),
        (PLAYER_CHAR, curses.COLOR_BLACK, curses.COLOR_MAGENTA),
        (PATH_CHAR, curses.COLOR_CYAN, curses.COLOR_BLACK),
        (HINT_CHAR, curses.COLOR_YELLOW, curses.COLOR_BLACK),
    ]
    attrs: Dict[str, int] = {}
    for number, (char, fg, bg) in enumerate(pairs, start=1):
        try:
            curses.init_pair(number, fg, bg)
        except curses.error:
            continue
        attrs[char] = curses.color_pair(number)
    return attrs


def curses_view(
    stdscr: "curses.window",
    *,
    config: Config,
    maze: Maze,
) -> None:
    """Interactive terminal (curses) game."""

    if curses.has_colors():
        curses.start_color()
        curses.use_default_colors()
    attrs = _color_attrs()

    seed = config.seed
    game = Game(maze)
    show_hint = False
    last_error: Optional[str] = None

    while True:
        marks: Dict[Coord, str] = {}
        if show_hint:
            for pos in (game.hint() or [])[1:-1]:
                marks[pos] = HINT_CHAR
        lines = render_rows(game.grid, marks=marks)

        stdscr.clear()
        max_y, max_x = stdscr.getmaxyx()
        if max_y < len(lines) + 4 or max_x <= game.grid.width:
            draw_text(stdscr, 0, 0, "Terminal too small; resize or press Q.")
        else:
            for y, line in enumerate(lines):
                for x, char in enumerate(line):
                    draw_text(stdscr, y, x, char, attrs.get(char, 0))
            base = len(lines)
            draw_text(stdscr, base, 0, MESSAGES[game.outcome])
            draw_text(stdscr, base + 1, 0,
                      "W/A/S/D move, H hint, N new field, Q quit")
            if last_error is not None:
                draw_text(stdscr, base + 2, 0, f"Last error: {last_error}")
        stdscr.refresh()

        key = stdscr.getch()
        if key < 0 or key > 255:
            continue
        ch = chr(key).upper()
        if ch == "Q":
            return
        elif ch == "H":
            show_hint = not show_hint
        elif ch == "N":
            seed = seed + 1 if seed is not None else None
            try:
                game = Game(new_maze(config, seed))
                last_error = None
            except (HatGenError, OSError) as exc:
                # The current field stays in play.
                last_error = f"{type(exc).__name__}: {exc}"
        else:
            game.step(ch)


def run(config: Config) -> int:
    """Generate the field, write the output file,
    then start the interactive game."""

    maze = new_maze(config, config.seed)

    try:
        curses.wrapper(curses_view, config=config, maze=maze)
    except curses.error as exc:
        print(f"Error: curses: {exc}", file=sys.stderr)
        return 0
    return 0


def main(argv: Sequence[str]) -> int:
    """CLI entrypoint."""

    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if len(argv) != 2:
        print("Usage: python3 find_your_hat.py config.txt", file=sys.stderr)
        return 2

    try:
        config = read_config(Path(argv[1]))
        return run(config)
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130
    except (ConfigError, HatGenError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        # Avoid tracebacks during play; keep output concise.
        print(f"Unexpected error: "
              f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 1


def cli() -> int:
    return main(sys.argv)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
