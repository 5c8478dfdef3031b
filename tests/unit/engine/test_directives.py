# ABOUTME: Unit tests for ward directive rules.
# ABOUTME: Validates legal directive sets per tile, garden walking, room moves and hiding.

from proof_of_life.engine.directives import (
    DEFAULT_ENTRY,
    MAX_HIDE_STREAK,
    apply_directive,
    can_hide,
    legal_directives,
)
from proof_of_life.models.session import Coord, Directive
from proof_of_life.world.floorplan import RoomCode, is_blocked_tile, room_at


class TestLegalDirectives:
    """Test suite for legal_directives"""

    def test_stay_always_legal(self):
        """Test that STAY is offered everywhere"""
        for ward in (Coord(x=5, y=5), Coord(x=5, y=1), Coord(x=8, y=8)):
            assert Directive.STAY in legal_directives(ward, 0, 0)

    def test_hallway_next_to_hide_spot(self):
        """Test that HIDE is offered within reach of a hide tile"""
        options = legal_directives(Coord(x=5, y=5), 0, 0)
        assert Directive.HIDE in options
        assert Directive.WALK_N not in options

    def test_hide_streak_cap(self):
        """Test that HIDE disappears after the maximum streak"""
        assert not can_hide(Coord(x=5, y=5), MAX_HIDE_STREAK, 0)
        assert Directive.HIDE not in legal_directives(Coord(x=5, y=5), MAX_HIDE_STREAK, 0)

    def test_garden_top_middle(self):
        """Test walking and the three garden doorways from the top-middle area"""
        options = legal_directives(Coord(x=5, y=1), 0, 0)
        assert Directive.WALK_N in options
        assert Directive.WALK_W in options
        for d in (Directive.GO_LIVING, Directive.GO_STUDY, Directive.GO_HALLWAY):
            assert d in options

    def test_room_exits_from_hallway(self):
        """Test that room moves follow the hallway's door exits"""
        options = legal_directives(Coord(x=5, y=5), 0, 0)
        assert Directive.GO_GARDEN in options
        assert Directive.GO_LIVING in options
        assert Directive.GO_GRAND_HALL in options


class TestApplyDirective:
    """Test suite for apply_directive"""

    def test_walk_outside_garden_is_refused(self):
        """Test that walking is garden-only"""
        move = apply_directive(Coord(x=5, y=5), Directive.WALK_N, 0)
        assert move.pos == Coord(x=5, y=5)
        assert "garden" in move.note

    def test_walk_in_garden(self):
        """Test a single garden step"""
        move = apply_directive(Coord(x=5, y=1), Directive.WALK_N, 0)
        assert move.pos == Coord(x=5, y=0)
        assert not move.hidden

    def test_hide(self):
        """Test hiding on the nearby hallway hide tile"""
        move = apply_directive(Coord(x=5, y=5), Directive.HIDE, 0)
        assert move.hidden
        assert move.pos == Coord(x=5, y=6)

    def test_garden_doorway_landing(self):
        """Test the hallway landing from the top-middle garden"""
        move = apply_directive(Coord(x=5, y=1), Directive.GO_HALLWAY, 0)
        assert move.pos == Coord(x=4, y=3)

    def test_room_move_lands_in_target_room(self):
        """Test a room move through a door"""
        move = apply_directive(Coord(x=5, y=5), Directive.GO_DINING, 0)
        assert room_at(move.pos.x, move.pos.y) == RoomCode.DINING

    def test_default_entries_land_in_their_rooms(self):
        """Test that every fallback room entry tile lies inside its room and is not blocked"""
        for room, entry in DEFAULT_ENTRY.items():
            if room == RoomCode.HALLWAY:
                continue
            assert room_at(entry.x, entry.y) == room
            assert not is_blocked_tile(entry.x, entry.y)

    def test_hallway_default_entry_matches_ledger(self):
        """Test that the hallway fallback uses the same tile the ledger moves the ward to"""
        assert DEFAULT_ENTRY[RoomCode.HALLWAY] == Coord(x=4, y=5)
