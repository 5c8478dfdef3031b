"""Static world data: floorplan, rooms, hide tiles"""

from .beacons import DEFAULT_BEACONS, resolve_beacons
from .floorplan import (
    BLOCKED_TILES,
    BOARD_H,
    BOARD_W,
    DOORS_CLOSED,
    DOORS_OPEN,
    HIDE_TILES,
    ROOM_GRID,
    ROOM_LEGEND,
    Dir,
    DoorExit,
    RoomCode,
    RoomMeta,
    Tile,
    can_move4,
    door_exits,
    find_any_exit_to_room,
    in_bounds,
    is_blocked_tile,
    is_hide_tile,
    is_pursuer_passable,
    is_ward_walkable,
    neighbours,
    pick_hide_tile_within,
    room_at,
    room_meta_at,
    room_tiles,
    walls_at,
)

__all__ = [
    "DEFAULT_BEACONS",
    "resolve_beacons",
    "BLOCKED_TILES",
    "BOARD_H",
    "BOARD_W",
    "DOORS_CLOSED",
    "DOORS_OPEN",
    "HIDE_TILES",
    "ROOM_GRID",
    "ROOM_LEGEND",
    "Dir",
    "DoorExit",
    "RoomCode",
    "RoomMeta",
    "Tile",
    "can_move4",
    "door_exits",
    "find_any_exit_to_room",
    "in_bounds",
    "is_blocked_tile",
    "is_hide_tile",
    "is_pursuer_passable",
    "is_ward_walkable",
    "neighbours",
    "pick_hide_tile_within",
    "room_at",
    "room_meta_at",
    "room_tiles",
    "walls_at",
]
