# ABOUTME: Ward directive rules: which commands are legal from a tile and where each one leads.
# ABOUTME: Room-level movement through door exits, garden sub-areas, and hide-spot selection.

from pydantic import BaseModel

from proof_of_life.models.session import Coord, Directive
from proof_of_life.world.floorplan import (
    ROOM_LEGEND,
    RoomCode,
    can_move4,
    door_exits,
    find_any_exit_to_room,
    is_ward_walkable,
    pick_hide_tile_within,
    room_at,
)

MAX_HIDE_STREAK = 2
HIDE_REACH = 2

ROOM_FOR_DIRECTIVE: dict[Directive, RoomCode] = {
    Directive.GO_GARDEN: RoomCode.GARDEN,
    Directive.GO_HALLWAY: RoomCode.HALLWAY,
    Directive.GO_LIVING: RoomCode.LIVING,
    Directive.GO_STUDY: RoomCode.STUDY,
    Directive.GO_LIBRARY: RoomCode.LIBRARY,
    Directive.GO_DINING: RoomCode.DINING,
    Directive.GO_KITCHEN: RoomCode.KITCHEN,
    Directive.GO_GRAND_HALL: RoomCode.GRAND_HALL,
}
DIRECTIVE_FOR_ROOM: dict[RoomCode, Directive] = {v: k for k, v in ROOM_FOR_DIRECTIVE.items()}

WALK_DELTAS: dict[Directive, tuple[int, int]] = {
    Directive.WALK_N: (0, -1),
    Directive.WALK_S: (0, 1),
    Directive.WALK_W: (-1, 0),
    Directive.WALK_E: (1, 0),
}

# Entry tiles used when a room has no direct door from the current room.
# These match the ledger's fallback; the hallway entry sits on a sealed winter garden tile there too.
DEFAULT_ENTRY: dict[RoomCode, Coord] = {
    RoomCode.GARDEN: Coord(x=5, y=1),
    RoomCode.LIVING: Coord(x=1, y=4),
    RoomCode.STUDY: Coord(x=8, y=4),
    RoomCode.LIBRARY: Coord(x=1, y=7),
    RoomCode.DINING: Coord(x=8, y=6),
    RoomCode.KITCHEN: Coord(x=8, y=8),
    RoomCode.GRAND_HALL: Coord(x=4, y=8),
    RoomCode.HALLWAY: Coord(x=4, y=5),
}

# Garden doorway landing tiles.
_GARDEN_LANDING: dict[Directive, Coord] = {
    Directive.GO_LIVING: Coord(x=1, y=3),
    Directive.GO_STUDY: Coord(x=8, y=3),
    Directive.GO_HALLWAY: Coord(x=4, y=3),
}


class WardMove(BaseModel):
    """Result of applying a directive to the ward"""

    pos: Coord
    hidden: bool
    note: str | None = None

    model_config = {"frozen": True}


def _garden_area(x: int, y: int) -> str | None:
    """Garden sub-area of a tile: 'left', 'right', 'top-mid' or None"""
    if not 0 <= y <= 2:
        return None
    if 0 <= x <= 3:
        return "left"
    if 7 <= x <= 9:
        return "right"
    if 4 <= x <= 6 and y <= 1:
        return "top-mid"
    return None


_GARDEN_EXITS: dict[str, tuple[Directive, ...]] = {
    "left": (Directive.GO_LIVING,),
    "right": (Directive.GO_STUDY,),
    "top-mid": (Directive.GO_LIVING, Directive.GO_STUDY, Directive.GO_HALLWAY),
}


def can_hide(ward: Coord, hide_streak: int, seed: int) -> bool:
    room = room_at(ward.x, ward.y)
    return hide_streak < MAX_HIDE_STREAK and pick_hide_tile_within(room, ward.x, ward.y, seed, HIDE_REACH) is not None


def legal_directives(ward: Coord, hide_streak: int, turn: int) -> list[Directive]:
    """Directives the dispatcher may issue for a ward standing on `ward`"""
    room = room_at(ward.x, ward.y)
    out: list[Directive] = [Directive.STAY]

    if can_hide(ward, hide_streak, turn):
        out.append(Directive.HIDE)

    if room == RoomCode.GARDEN:
        for directive, (dx, dy) in WALK_DELTAS.items():
            nx, ny = ward.x + dx, ward.y + dy
            if room_at(nx, ny) != RoomCode.GARDEN:
                continue
            if not is_ward_walkable(nx, ny) or not can_move4(ward.x, ward.y, nx, ny):
                continue
            out.append(directive)

        area = _garden_area(ward.x, ward.y)
        if area is not None:
            out.extend(d for d in _GARDEN_EXITS[area] if d not in out)
            return out

    for exit_ in door_exits(room):
        directive = DIRECTIVE_FOR_ROOM.get(exit_.to_room)
        if directive is not None and directive not in out:
            out.append(directive)
    return out


def is_directive_allowed(ward: Coord, hide_streak: int, turn: int, directive: Directive) -> bool:
    return directive in legal_directives(ward, hide_streak, turn)


def apply_directive(ward: Coord, directive: Directive, seed: int) -> WardMove:
    """Move the ward at room level; returns its new tile, hidden flag and a spoken note"""
    room = room_at(ward.x, ward.y)

    if directive.is_walk:
        if room != RoomCode.GARDEN:
            return WardMove(pos=ward, hidden=False, note="I can only walk like that inside the garden.")
        dx, dy = WALK_DELTAS[directive]
        nx, ny = ward.x + dx, ward.y + dy
        if room_at(nx, ny) != RoomCode.GARDEN:
            return WardMove(pos=ward, hidden=False, note="I can't leave the garden from this angle.")
        if not can_move4(ward.x, ward.y, nx, ny) or not is_ward_walkable(nx, ny):
            return WardMove(pos=ward, hidden=False, note="That path is blocked.")
        return WardMove(pos=Coord(x=nx, y=ny), hidden=False, note="I'm moving.")

    if directive == Directive.HIDE:
        tile = pick_hide_tile_within(room, ward.x, ward.y, seed, HIDE_REACH)
        if tile is None:
            return WardMove(pos=ward, hidden=False, note="I'm too far from a safe hiding spot.")
        return WardMove(pos=Coord(x=tile.x, y=tile.y), hidden=True, note=f"I'm hiding {tile.label}.")

    if directive.is_go:
        target_room = ROOM_FOR_DIRECTIVE[directive]
        label = ROOM_LEGEND[target_room].label

        if room == RoomCode.GARDEN and 0 <= ward.y <= 2:
            area = _garden_area(ward.x, ward.y)
            if area is not None and directive in _GARDEN_EXITS[area]:
                return WardMove(
                    pos=_GARDEN_LANDING[directive],
                    hidden=False,
                    note=f"I'm heading into the {label} now.",
                )
            return WardMove(pos=ward, hidden=False, note="I don't have a safe route from here.")

        exit_ = find_any_exit_to_room(room, target_room)
        if exit_ is not None:
            return WardMove(
                pos=Coord(x=exit_.to_x, y=exit_.to_y),
                hidden=False,
                note=f"I'm moving into the {label} now.",
            )
        return WardMove(
            pos=DEFAULT_ENTRY[target_room],
            hidden=False,
            note=f"I'm moving into the {label} now.",
        )

    return WardMove(pos=ward, hidden=False)
