"""Reusable "find your hat" field generator module.

Basic usage:

    import random
    from hatgen import generate_solvable, is_solvable

    maze = generate_solvable(15, 15, density=30, rng=random.Random(42))
    assert is_solvable(maze)
    print(maze.grid)

The field is stored as a `Grid` of single characters (`grid.get(x, y)`), where
x is the column and y is the row. The player starts on `PLAYER_CHAR` and has to
reach `HAT_CHAR` without stepping on a `HOLE_CHAR` or leaving the field.
"""

from collections import deque
from dataclasses import dataclass, field
import logging
import random
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple


Coord = Tuple[int, int]  # (x, y)


HAT_CHAR = "^"
HOLE_CHAR = "O"
FIELD_CHAR = "░"
PATH_CHAR = "*"
PLAYER_CHAR = "P"

# Cell values of the bordered numeric grid used by the verifier.
UNVISITED = 0
VISITED = 1
BLOCKED = 2

FREE_CELL_MAX_TRIES = 10_000
DENSITY_WARN_THRESHOLD = 50


logger = logging.getLogger(__name__)


class HatGenError(Exception):
    """Base class for recoverable generation errors."""

    pass


class ExhaustedGrid(HatGenError):
    """No free cell could be found; lower the density or enlarge the field."""

    pass


class NoSolvableMazeFound(HatGenError):
    """No candidate passed the distance and solvability checks."""

    pass


class VerifierDidNotTerminate(RuntimeError):
    """The solvability walk exceeded its step budget (a logic fault)."""

    pass


class Grid:
    """Rectangular matrix of cells indexed as `cells[y][x]`."""

    width: int
    height: int
    cells: List[List[Any]]

    def __init__(self, width: int, height: int, fill: Any = FIELD_CHAR) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("Grid width and height must be > 0")
        self.width = width
        self.height = height
        self.cells = [[fill for _ in range(width)] for _ in range(height)]

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[Any]]) -> "Grid":
        """Build a grid from row-major data (all rows must share a length)."""

        data = [list(row) for row in rows]
        if not data or not data[0]:
            raise ValueError("Grid rows must not be empty")
        if any(len(row) != len(data[0]) for row in data):
            raise ValueError("Grid rows must all have the same length")

        grid = cls(len(data[0]), len(data))
        grid.cells = data
        return grid

    def get(self, x: int, y: int) -> Any:
        return self.cells[y][x]

    def set(self, x: int, y: int, value: Any) -> None:
        self.cells[y][x] = value

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def count(self, value: Any) -> int:
        return sum(row.count(value) for row in self.cells)

    def rows(self) -> List[List[Any]]:
        return [list(row) for row in self.cells]

    def copy(self) -> "Grid":
        return Grid.from_rows(self.cells)

    def find_random_free_cell(
        self,
        rng: random.Random,
        *,
        free: Any = FIELD_CHAR,
        max_tries: int = FREE_CELL_MAX_TRIES,
    ) -> Coord:
        """Return a uniformly sampled coordinate whose cell holds `free`.

        Raises ExhaustedGrid when the grid has no free cell left, or when
        `max_tries` samples all missed.
        """

        if self.count(free) == 0:
            raise ExhaustedGrid(
                f"No free cell left in a {self.width}x{self.height} field"
            )

        for _ in range(max_tries):
            x = rng.randrange(self.width)
            y = rng.randrange(self.height)
            if self.cells[y][x] == free:
                return (x, y)

        raise ExhaustedGrid(
            f"Could not find a free cell after {max_tries} tries"
        )

    def __str__(self) -> str:
        return "\n".join("".join(str(c) for c in row) for row in self.cells)


@dataclass
class Maze:
    """A generated field plus its start, goal and hole coordinates."""

    grid: Grid
    start: Coord
    goal: Coord
    holes: List[Coord] = field(default_factory=list)

    @property
    def width(self) -> int:
        return self.grid.width

    @property
    def height(self) -> int:
        return self.grid.height


@dataclass
class NumericField:
    """Bordered numeric copy of a maze, owned by the verifier."""

    grid: Grid
    start: Coord
    goal: Coord


class Agent:
    """A single movable position (the player, or the verifier's cursor)."""

    x: int
    y: int

    def __init__(self, x: int, y: int) -> None:
        self.x = x
        self.y = y

    @property
    def position(self) -> Coord:
        return (self.x, self.y)

    def up(self) -> None:
        self.y -= 1

    def down(self) -> None:
        self.y += 1

    def left(self) -> None:
        self.x -= 1

    def right(self) -> None:
        self.x += 1

    def __repr__(self) -> str:
        return f"Agent(x={self.x}, y={self.y})"


def is_out_of_bounds(grid: Grid, pos: Coord) -> bool:
    return not grid.contains(pos[0], pos[1])


def is_in_hole(grid: Grid, pos: Coord) -> bool:
    x, y = pos
    return grid.contains(x, y) and grid.get(x, y) == HOLE_CHAR


def is_on_goal(grid: Grid, pos: Coord) -> bool:
    x, y = pos
    return grid.contains(x, y) and grid.get(x, y) == HAT_CHAR


def hole_count(height: int, width: int, density: float) -> int:
    """Number of holes for a field: floor(height * width * density / 100)."""

    return max(0, int(height * width * density // 100))


def generate(
    height: int,
    width: int,
    density: float = 30,
    rng: Optional[random.Random] = None,
) -> Maze:
    """Generate a random field: start, then holes, then the hat.

    Every marker is placed on a cell that was still empty, so start, goal and
    holes never overlap.
    """

    if height <= 0 or width <= 0:
        raise ValueError("HEIGHT and WIDTH must be > 0")
    if density > DENSITY_WARN_THRESHOLD:
        logger.debug("Generating with density %s%%", density)

    rng = rng if rng is not None else random.Random()
    grid = Grid(width, height)

    start = grid.find_random_free_cell(rng)
    grid.set(start[0], start[1], PLAYER_CHAR)

    holes: List[Coord] = []
    for _ in range(hole_count(height, width, density)):
        hole = grid.find_random_free_cell(rng)
        grid.set(hole[0], hole[1], HOLE_CHAR)
        holes.append(hole)

    goal = grid.find_random_free_cell(rng)
    grid.set(goal[0], goal[1], HAT_CHAR)

    return Maze(grid=grid, start=start, goal=goal, holes=holes)


def build_maze(
    height: int,
    width: int,
    start: Coord,
    goal: Coord,
    holes: Iterable[Coord] = (),
) -> Maze:
    """Assemble a maze from explicit coordinates (hand-made fields)."""

    grid = Grid(width, height)
    hole_list = list(holes)
    placed: Dict[Coord, str] = {}

    for coord, char in [(start, PLAYER_CHAR)] + [
        (h, HOLE_CHAR) for h in hole_list
    ] + [(goal, HAT_CHAR)]:
        if not grid.contains(coord[0], coord[1]):
            raise ValueError(f"Coordinate {coord} is outside the field")
        if coord in placed:
            raise ValueError(f"Coordinate {coord} is used twice")
        placed[coord] = char
        grid.set(coord[0], coord[1], char)

    return Maze(grid=grid, start=start, goal=goal, holes=hole_list)


def is_far_enough(maze: Maze) -> bool:
    """True when start and goal are at least half the field apart on each axis."""

    diff_x = abs(maze.start[0] - maze.goal[0])
    diff_y = abs(maze.start[1] - maze.goal[1])
    return diff_x >= maze.width / 2 and diff_y >= maze.height / 2


def generate_solvable(
    height: int,
    width: int,
    density: float = 30,
    max_attempts: int = 100,
    rng: Optional[random.Random] = None,
) -> Maze:
    """Return the first generated field that is far enough and solvable.

    Raises NoSolvableMazeFound once `max_attempts` candidates were rejected.
    """

    if density > DENSITY_WARN_THRESHOLD:
        logger.warning(
            "Density %s%% is above %s%%; fields may be unsolvable",
            density,
            DENSITY_WARN_THRESHOLD,
        )
    rng = rng if rng is not None else random.Random()

    for attempt in range(1, max_attempts + 1):
        maze = generate(height, width, density, rng)
        if not is_far_enough(maze):
            logger.debug(
                "Attempt %d: start %s and goal %s too close",
                attempt,
                maze.start,
                maze.goal,
            )
            continue
        if not is_solvable(maze):
            logger.debug("Attempt %d: field is not solvable", attempt)
            continue
        logger.info(
            "Accepted %dx%d field after %d attempt(s)", width, height, attempt
        )
        return maze

    raise NoSolvableMazeFound(
        f"No solvable {width}x{height} field with density {density}% "
        f"found in {max_attempts} attempt(s)"
    )


def to_numeric_coord(coord: Coord) -> Coord:
    return (coord[0] + 1, coord[1] + 1)


def from_numeric_coord(coord: Coord) -> Coord:
    return (coord[0] - 1, coord[1] - 1)


def to_numeric(maze: Maze) -> NumericField:
    """Turn a maze into its bordered numeric representation.

    Holes and the one-cell border become BLOCKED, everything else UNVISITED.
    """

    grid = Grid(maze.width + 2, maze.height + 2, fill=BLOCKED)
    for y in range(maze.height):
        for x in range(maze.width):
            if maze.grid.get(x, y) != HOLE_CHAR:
                grid.set(x + 1, y + 1, UNVISITED)

    return NumericField(
        grid=grid,
        start=to_numeric_coord(maze.start),
        goal=to_numeric_coord(maze.goal),
    )


# Movement priority of the walk: up and right first so that the
# "up equals right" dead-end rule below fires consistently.
_WALK_ORDER: Tuple[Tuple[Callable[[Agent], None], int, int], ...] = (
    (Agent.up, 0, -1),
    (Agent.right, 1, 0),
    (Agent.left, -1, 0),
    (Agent.down, 0, 1),
)


def _advance(grid: Grid, bot: Agent) -> None:
    for wanted in (UNVISITED, VISITED):
        for move, dx, dy in _WALK_ORDER:
            if grid.get(bot.x + dx, bot.y + dy) == wanted:
                move(bot)
                return


def is_solvable(maze: Maze, max_steps: Optional[int] = None) -> bool:
    """Walk a bot over a numeric copy of the field and report if it hits the hat.

    The walk is a single cursor with no stack: cells walled in on three sides
    (sum 7), and cells whose top and right neighbours match while two sides are
    blocked or visited (sum 6), are turned into dead ends. A cursor whose four
    neighbours are all blocked (sum 8) is trapped and the field is unsolvable.

    The walk is conservative: it never accepts an unsolvable field, but it can
    reject some solvable ones.

    Raises VerifierDidNotTerminate if more than `max_steps` steps are taken
    (default: height * width * 4).
    """

    numeric = to_numeric(maze)
    grid = numeric.grid
    bot = Agent(*numeric.start)
    limit = max_steps if max_steps is not None else maze.height * maze.width * 4
    steps = 0

    while True:
        if bot.position == numeric.goal:
            return True
        if steps >= limit:
            raise VerifierDidNotTerminate(
                f"Solvability walk exceeded {limit} steps at "
                f"{from_numeric_coord(bot.position)}"
            )
        steps += 1

        up = grid.get(bot.x, bot.y - 1)
        right = grid.get(bot.x + 1, bot.y)
        total = up + right + grid.get(bot.x - 1, bot.y) + grid.get(bot.x, bot.y + 1)

        if total == 8:
            logger.debug("Walk trapped after %d step(s)", steps)
            return False
        elif total == 7:
            grid.set(bot.x, bot.y, BLOCKED)
        elif total == 6 and up == right:
            grid.set(bot.x, bot.y, BLOCKED)
        else:
            grid.set(bot.x, bot.y, VISITED)

        _advance(grid, bot)


def shortest_path(
    maze: Maze, start: Optional[Coord] = None
) -> Optional[List[Coord]]:
    """Return the shortest hole-free path to the hat using BFS.

    Returns a list of coordinates including both endpoints, or None if no path
    exists.
    """

    entry = maze.start if start is None else start
    if entry == maze.goal:
        return [entry]

    q: Deque[Coord] = deque([entry])
    prev: Dict[Coord, Optional[Coord]] = {entry: None}

    while q:
        x, y = q.popleft()
        if (x, y) == maze.goal:
            break

        for nxt in ((x, y - 1), (x + 1, y), (x - 1, y), (x, y + 1)):
            if nxt in prev:
                continue
            if is_out_of_bounds(maze.grid, nxt) or is_in_hole(maze.grid, nxt):
                continue
            prev[nxt] = (x, y)
            q.append(nxt)

    if maze.goal not in prev:
        return None

    out: List[Coord] = []
    cur: Optional[Coord] = maze.goal
    while cur is not None:
        out.append(cur)
        cur = prev[cur]
    out.reverse()
    return out
