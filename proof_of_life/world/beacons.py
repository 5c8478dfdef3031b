# ABOUTME: Beacon coordinates used by ping proofs, with ledger defaults as fallback.
# ABOUTME: Remote tower configuration overrides the defaults when it is available and well-formed.

from typing import Any

from loguru import logger

from proof_of_life.models.session import Beacon, Coord

from .floorplan import in_bounds

DEFAULT_BEACONS: dict[Beacon, Coord] = {
    Beacon.N: Coord(x=5, y=0),
    Beacon.E: Coord(x=9, y=5),
    Beacon.S: Coord(x=5, y=9),
    Beacon.W: Coord(x=0, y=5),
}


def resolve_beacons(remote: dict[str, Any] | None) -> dict[Beacon, Coord]:
    """
    Build beacon coordinates from a remote towers record ({n_x, n_y, e_x, ...}).

    Any missing or out-of-board coordinate keeps its default.
    """
    if not remote:
        return dict(DEFAULT_BEACONS)

    out: dict[Beacon, Coord] = {}
    for beacon, default in DEFAULT_BEACONS.items():
        prefix = beacon.value.lower()
        x = remote.get(f"{prefix}_x")
        y = remote.get(f"{prefix}_y")
        if isinstance(x, int) and isinstance(y, int) and in_bounds(x, y):
            out[beacon] = Coord(x=x, y=y)
        else:
            logger.warning(f"Remote beacon {beacon.value} invalid ({x}, {y}); using default")
            out[beacon] = default
    return out
