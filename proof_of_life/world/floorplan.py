# ABOUTME: Static mansion floorplan: room grid, generated wall masks, doors, hide and blocked tiles.
# ABOUTME: Answers adjacency, passability and door-exit queries for the movement engine.

from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, Field

BOARD_W = 10
BOARD_H = 10


class Dir(str, Enum):
    """Compass direction of a 4-neighbour step"""
    N = "N"
    E = "E"
    S = "S"
    W = "W"


_DELTAS: dict[Dir, tuple[int, int]] = {
    Dir.N: (0, -1),
    Dir.E: (1, 0),
    Dir.S: (0, 1),
    Dir.W: (-1, 0),
}
_OPPOSITE: dict[Dir, Dir] = {Dir.N: Dir.S, Dir.S: Dir.N, Dir.E: Dir.W, Dir.W: Dir.E}


class RoomCode(str, Enum):
    """Single-letter room codes used in ROOM_GRID"""
    GARDEN = "G"
    HALLWAY = "H"
    LIVING = "L"
    STUDY = "S"
    LIBRARY = "B"
    DINING = "D"
    GRAND_HALL = "E"
    KITCHEN = "K"
    WINTER_GARDEN = "W"


class RoomMeta(BaseModel):
    code: RoomCode
    label: str
    flavor: str

    model_config = {"frozen": True}


class Tile(BaseModel):
    """A labelled board coordinate (hide spot or blocked prop)"""

    x: int
    y: int
    label: str

    model_config = {"frozen": True}


class DoorEdge(BaseModel):
    ax: int
    ay: int
    bx: int
    by: int

    model_config = {"frozen": True}


class DoorExit(BaseModel):
    """A legal single step from a room into a neighbouring room"""

    from_x: int
    from_y: int
    to_x: int
    to_y: int
    dir: Dir
    to_room: RoomCode

    model_config = {"frozen": True}


class WallMask(BaseModel):
    n: bool = Field(default=False)
    e: bool = Field(default=False)
    s: bool = Field(default=False)
    w: bool = Field(default=False)

    def blocks(self, direction: Dir) -> bool:
        return getattr(self, direction.value.lower())


ROOM_LEGEND: dict[RoomCode, RoomMeta] = {
    RoomCode.GARDEN: RoomMeta(
        code=RoomCode.GARDEN,
        label="Indoor Garden",
        flavor="Broken glass ceiling. Rain is coming in.",
    ),
    RoomCode.HALLWAY: RoomMeta(
        code=RoomCode.HALLWAY,
        label="Hallway",
        flavor="Narrow corridor. Wallpaper peeling like dead skin.",
    ),
    RoomCode.LIVING: RoomMeta(
        code=RoomCode.LIVING,
        label="Living Room",
        flavor="Torn sofas. There's an unlit fireplace.",
    ),
    RoomCode.STUDY: RoomMeta(
        code=RoomCode.STUDY,
        label="Study",
        flavor="A desk lamp clicks, but no light comes on.",
    ),
    RoomCode.LIBRARY: RoomMeta(
        code=RoomCode.LIBRARY,
        label="Library Wing",
        flavor="Tall shelves. Dust. The floor creaks here.",
    ),
    RoomCode.DINING: RoomMeta(
        code=RoomCode.DINING,
        label="Dining Room",
        flavor="A long table. Silverware laid out like teeth.",
    ),
    RoomCode.GRAND_HALL: RoomMeta(
        code=RoomCode.GRAND_HALL,
        label="Grand Hall",
        flavor="Main door locked. Cold marble underfoot.",
    ),
    RoomCode.KITCHEN: RoomMeta(
        code=RoomCode.KITCHEN,
        label="Industrial Kitchen",
        flavor="Rotten meat smell. Rusty knives on the counter.",
    ),
    RoomCode.WINTER_GARDEN: RoomMeta(
        code=RoomCode.WINTER_GARDEN,
        label="Winter Garden (Sealed)",
        flavor="Frosted glass. Condensation. The door is welded shut.",
    ),
}

# Rows are y=0..9, columns x=0..9.
ROOM_GRID: tuple[str, ...] = (
    "GGGGGGGGGG",
    "GGGGGGGGGG",
    "GGGGGGGGGG",
    "LLLHHHSSSS",
    "LLLHWHSSSS",
    "BBBHWHHDDD",
    "BBBHHHHDDD",
    "BBBEEEHKKK",
    "BBBEEEHKKK",
    "HHHEEEHKKK",
)

# Tight spaces the ward can hide in. The pursuer can never step onto one.
HIDE_TILES: dict[RoomCode, tuple[Tile, ...]] = {
    RoomCode.GARDEN: (
        Tile(x=1, y=1, label="behind a stone planter"),
        Tile(x=8, y=0, label="under a toppled bench"),
    ),
    RoomCode.HALLWAY: (Tile(x=5, y=6, label="behind a torn curtain"),),
    RoomCode.LIVING: (
        Tile(x=0, y=3, label="inside the fireplace"),
        Tile(x=1, y=4, label="behind the sofa"),
    ),
    RoomCode.STUDY: (
        Tile(x=9, y=3, label="inside a wardrobe"),
        Tile(x=7, y=4, label="under the desk"),
    ),
    RoomCode.LIBRARY: (
        Tile(x=0, y=6, label="between shelves"),
        Tile(x=2, y=8, label="inside a reading nook"),
    ),
    RoomCode.DINING: (
        Tile(x=9, y=6, label="under the tablecloth"),
        Tile(x=7, y=5, label="inside a cabinet"),
    ),
    RoomCode.GRAND_HALL: (
        Tile(x=3, y=9, label="inside the coat closet"),
        Tile(x=5, y=8, label="beneath the staircase"),
    ),
    RoomCode.KITCHEN: (
        Tile(x=8, y=7, label="inside the pantry"),
        Tile(x=9, y=9, label="under a prep table"),
    ),
    RoomCode.WINTER_GARDEN: (),
}

# Impassable to both the ward and the pursuer.
BLOCKED_TILES: tuple[Tile, ...] = (
    Tile(x=4, y=4, label="Winter Garden (sealed)"),
    Tile(x=4, y=5, label="Winter Garden (sealed)"),
    Tile(x=5, y=2, label="Stairs up (sealed)"),
    Tile(x=6, y=2, label="Stairs up (sealed)"),
    Tile(x=0, y=9, label="Balcony / railing"),
    Tile(x=1, y=9, label="Balcony / railing"),
    Tile(x=2, y=9, label="Balcony / railing"),
)

# Open doors remove the boundary wall between their two cells.
DOORS_OPEN: tuple[DoorEdge, ...] = (
    DoorEdge(ax=4, ay=2, bx=4, by=3),  # garden <-> hallway
    DoorEdge(ax=1, ay=2, bx=1, by=3),  # garden <-> living
    DoorEdge(ax=2, ay=4, bx=2, by=5),  # living <-> library
    DoorEdge(ax=2, ay=3, bx=3, by=3),  # living <-> hallway
    DoorEdge(ax=2, ay=6, bx=3, by=6),  # library <-> hallway
    DoorEdge(ax=2, ay=7, bx=3, by=7),  # library <-> grand hall
    DoorEdge(ax=8, ay=2, bx=8, by=3),  # garden <-> study
    DoorEdge(ax=5, ay=3, bx=6, by=3),  # study <-> hallway
    DoorEdge(ax=7, ay=6, bx=7, by=7),  # kitchen <-> dining
    DoorEdge(ax=6, ay=8, bx=7, by=8),  # kitchen <-> hallway
    DoorEdge(ax=6, ay=5, bx=7, by=5),  # dining <-> hallway
    DoorEdge(ax=4, ay=6, bx=4, by=7),  # hallway <-> grand hall
)

# Closed doors are markers only; the wall stays.
DOORS_CLOSED: tuple[DoorEdge, ...] = (
    DoorEdge(ax=4, ay=3, bx=4, by=4),
    DoorEdge(ax=4, ay=5, bx=4, by=6),
)


def in_bounds(x: int, y: int) -> bool:
    return 0 <= x < BOARD_W and 0 <= y < BOARD_H


def room_at(x: int, y: int) -> RoomCode:
    """Room code of a cell; out-of-bounds reads as hallway"""
    if not in_bounds(x, y):
        return RoomCode.HALLWAY
    return RoomCode(ROOM_GRID[y][x])


def room_meta_at(x: int, y: int) -> RoomMeta:
    return ROOM_LEGEND[room_at(x, y)]


def _direction_between(ax: int, ay: int, bx: int, by: int) -> Dir | None:
    delta = (bx - ax, by - ay)
    for direction, d in _DELTAS.items():
        if d == delta:
            return direction
    return None


@lru_cache(maxsize=1)
def _wall_masks() -> tuple[tuple[WallMask, ...], ...]:
    walls = [[set() for _ in range(BOARD_W)] for _ in range(BOARD_H)]

    def add_wall(x: int, y: int, direction: Dir) -> None:
        walls[y][x].add(direction)
        dx, dy = _DELTAS[direction]
        nx, ny = x + dx, y + dy
        if in_bounds(nx, ny):
            walls[ny][nx].add(_OPPOSITE[direction])

    for x in range(BOARD_W):
        add_wall(x, 0, Dir.N)
        add_wall(x, BOARD_H - 1, Dir.S)
    for y in range(BOARD_H):
        add_wall(0, y, Dir.W)
        add_wall(BOARD_W - 1, y, Dir.E)

    for y in range(BOARD_H):
        for x in range(BOARD_W):
            here = ROOM_GRID[y][x]
            if x + 1 < BOARD_W and ROOM_GRID[y][x + 1] != here:
                add_wall(x, y, Dir.E)
            if y + 1 < BOARD_H and ROOM_GRID[y + 1][x] != here:
                add_wall(x, y, Dir.S)

    for door in DOORS_OPEN:
        direction = _direction_between(door.ax, door.ay, door.bx, door.by)
        if direction is None:
            continue
        walls[door.ay][door.ax].discard(direction)
        walls[door.by][door.bx].discard(_OPPOSITE[direction])

    return tuple(
        tuple(
            WallMask(
                n=Dir.N in cell,
                e=Dir.E in cell,
                s=Dir.S in cell,
                w=Dir.W in cell,
            )
            for cell in row
        )
        for row in walls
    )


def walls_at(x: int, y: int) -> WallMask:
    if not in_bounds(x, y):
        return WallMask(n=True, e=True, s=True, w=True)
    return _wall_masks()[y][x]


def is_blocked_tile(x: int, y: int) -> bool:
    return any(t.x == x and t.y == y for t in BLOCKED_TILES)


def is_hide_tile(x: int, y: int) -> bool:
    """True for any declared hide tile, independent of which room lists it"""
    return any(t.x == x and t.y == y for tiles in HIDE_TILES.values() for t in tiles)


def can_move4(ax: int, ay: int, bx: int, by: int) -> bool:
    """True when a single orthogonal step a->b stays in bounds, off blocked tiles, and through no wall"""
    if not in_bounds(ax, ay) or not in_bounds(bx, by):
        return False
    if is_blocked_tile(ax, ay) or is_blocked_tile(bx, by):
        return False
    direction = _direction_between(ax, ay, bx, by)
    if direction is None:
        return False
    return not walls_at(ax, ay).blocks(direction)


def is_pursuer_passable(x: int, y: int) -> bool:
    return in_bounds(x, y) and not is_blocked_tile(x, y) and not is_hide_tile(x, y)


def is_ward_walkable(x: int, y: int) -> bool:
    return in_bounds(x, y) and not is_blocked_tile(x, y) and not is_hide_tile(x, y)


def neighbours(x: int, y: int) -> list[tuple[int, int]]:
    """Orthogonal neighbours in N, S, W, E order"""
    return [(x, y - 1), (x, y + 1), (x - 1, y), (x + 1, y)]


@lru_cache(maxsize=None)
def door_exits(code: RoomCode) -> tuple[DoorExit, ...]:
    """All single steps leaving a room onto a walkable tile of another room, in stable order"""
    out: list[DoorExit] = []
    for y in range(BOARD_H):
        for x in range(BOARD_W):
            if room_at(x, y) != code:
                continue
            for direction, (dx, dy) in _DELTAS.items():
                nx, ny = x + dx, y + dy
                if not in_bounds(nx, ny):
                    continue
                other = room_at(nx, ny)
                if other == code:
                    continue
                if not can_move4(x, y, nx, ny) or not is_ward_walkable(nx, ny):
                    continue
                out.append(DoorExit(from_x=x, from_y=y, to_x=nx, to_y=ny, dir=direction, to_room=other))
    out.sort(key=lambda e: (e.dir.value, e.from_y, e.from_x, e.to_y, e.to_x))
    return tuple(out)


def find_any_exit_to_room(from_room: RoomCode, to_room: RoomCode) -> DoorExit | None:
    for exit_ in door_exits(from_room):
        if exit_.to_room == to_room:
            return exit_
    return None


def pick_hide_tile_within(
    code: RoomCode,
    from_x: int,
    from_y: int,
    seed: int,
    max_manhattan: int = 2,
) -> Tile | None:
    """Deterministically pick one of the room's hide tiles within Manhattan reach, or None"""
    eligible = [
        t for t in HIDE_TILES[code]
        if abs(t.x - from_x) + abs(t.y - from_y) <= max_manhattan
    ]
    if not eligible:
        return None
    return eligible[abs(seed) % len(eligible)]


def room_tiles(code: RoomCode) -> list[tuple[int, int]]:
    return [
        (x, y)
        for y in range(BOARD_H)
        for x in range(BOARD_W)
        if room_at(x, y) == code
    ]
