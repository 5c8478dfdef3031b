# ABOUTME: Pursuer movement engine: BFS pathing over the floorplan, fog-of-war tracking and path validation.
# ABOUTME: Pure functions over Coord/SecretState; no session mutation happens here.

import random
from collections import deque

from loguru import logger
from pydantic import BaseModel, Field

from proof_of_life.models.secret import SEEN_WINDOW, SecretState
from proof_of_life.models.session import Coord
from proof_of_life.world.floorplan import (
    BOARD_H,
    BOARD_W,
    RoomCode,
    can_move4,
    in_bounds,
    is_hide_tile,
    is_pursuer_passable,
    is_ward_walkable,
    neighbours,
    room_at,
)

VISIBLE_STEP_BUDGET = 1
HIDDEN_STEP_BUDGET = 6
MIN_SPAWN_PATH = 4


class PursuerTurn(BaseModel):
    """Everything needed to move the pursuer for one evader phase"""

    secret: SecretState = Field(description="Secret with the fog-of-war tracker already updated")
    origin: Coord
    target: Coord = Field(description="Delayed ward position the pursuer is chasing")
    ward: Coord
    ward_hidden: bool
    max_steps: int
    must_move: bool

    model_config = {"frozen": True}


class PathValidation(BaseModel):
    ok: bool
    reason: str | None = None
    max_steps: int
    must_move: bool

    model_config = {"frozen": True}


def step_budget(ward_hidden: bool) -> int:
    return HIDDEN_STEP_BUDGET if ward_hidden else VISIBLE_STEP_BUDGET


def _pursuer_neighbours(p: Coord) -> list[Coord]:
    return [
        Coord(x=nx, y=ny)
        for nx, ny in neighbours(p.x, p.y)
        if can_move4(p.x, p.y, nx, ny) and is_pursuer_passable(nx, ny)
    ]


def bfs_distance(start: Coord, goal: Coord) -> int | None:
    """Shortest pursuer path length from start to goal, or None when unreachable"""
    if start == goal:
        return 0
    seen = {start}
    queue: deque[tuple[Coord, int]] = deque([(start, 0)])
    while queue:
        cur, depth = queue.popleft()
        for n in _pursuer_neighbours(cur):
            if n in seen:
                continue
            if n == goal:
                return depth + 1
            seen.add(n)
            queue.append((n, depth + 1))
    return None


def _greedy_step(start: Coord, goal: Coord) -> Coord:
    dx = goal.x - start.x
    dy = goal.y - start.y
    if dx == 0 and dy == 0:
        return start
    if abs(dx) >= abs(dy):
        return Coord(x=start.x + (1 if dx > 0 else -1), y=start.y)
    return Coord(x=start.x, y=start.y + (1 if dy > 0 else -1))


def next_step_toward(start: Coord, goal: Coord) -> Coord:
    """
    First step of a shortest pursuer path toward goal.

    When goal is unreachable (e.g. the ward stands on a hide tile) a greedy
    step is tried instead; if that is not a legal pursuer step, start is returned.
    """
    if start == goal:
        return start

    prev: dict[Coord, Coord | None] = {start: None}
    queue: deque[Coord] = deque([start])
    while queue:
        cur = queue.popleft()
        if cur == goal:
            break
        for n in _pursuer_neighbours(cur):
            if n in prev:
                continue
            prev[n] = cur
            queue.append(n)

    if goal not in prev:
        greedy = _greedy_step(start, goal)
        if can_move4(start.x, start.y, greedy.x, greedy.y) and is_pursuer_passable(greedy.x, greedy.y):
            return greedy
        return start

    cursor = goal
    while prev[cursor] is not None and prev[cursor] != start:
        cursor = prev[cursor]
    return cursor


def pick_any_pursuer_move(start: Coord, target: Coord) -> Coord:
    """Best single legal step toward target, used to enforce the must-move rule"""
    legal = _pursuer_neighbours(start)
    if not legal:
        return start

    def rank(p: Coord) -> tuple[float, int, int]:
        d = bfs_distance(p, target)
        return (float("inf") if d is None else float(d), p.y, p.x)

    return min(legal, key=rank)


def track_ward(secret: SecretState, ward: Coord, ward_hidden: bool) -> SecretState:
    """
    Update the fog-of-war tracker after the ward has moved.

    While visible, the position is appended to the rolling window and the
    pursuer's target becomes the position seen two turns earlier. While hidden
    the tracker is frozen.
    """
    if ward_hidden:
        return secret
    seen = [*secret.seen_ward, ward][-SEEN_WINDOW:]
    last_known = seen[max(0, len(seen) - 3)]
    return secret.model_copy(update={"seen_ward": seen, "last_known_ward": last_known})


def prepare_pursuer_turn(
    secret: SecretState,
    ward: Coord,
    ward_hidden: bool,
    track: bool = True,
) -> PursuerTurn:
    """Plan the evader phase; pass track=False when the tracker was already updated this turn"""
    tracked = track_ward(secret, ward, ward_hidden) if track else secret
    origin = tracked.pursuer
    forced = pick_any_pursuer_move(origin, tracked.last_known_ward)
    return PursuerTurn(
        secret=tracked,
        origin=origin,
        target=tracked.last_known_ward,
        ward=ward,
        ward_hidden=ward_hidden,
        max_steps=step_budget(ward_hidden),
        must_move=forced != origin,
    )


def prepare_pursuer_turn_from_remote(
    secret: SecretState,
    ward: Coord,
    ward_hidden: bool,
    hide_streak: int,
) -> PursuerTurn:
    """
    Prepare a pursuer turn from a remote session snapshot.

    Remote hidden flags can lag, so a positive hide streak or a ward standing
    on a hide tile also counts as hidden. The tracker only records the ward
    when it differs from the last recorded position.
    """
    hidden = ward_hidden or hide_streak > 0 or is_hide_tile(ward.x, ward.y)
    if not hidden and secret.seen_ward and secret.seen_ward[-1] == ward:
        origin = secret.pursuer
        forced = pick_any_pursuer_move(origin, secret.last_known_ward)
        return PursuerTurn(
            secret=secret,
            origin=origin,
            target=secret.last_known_ward,
            ward=ward,
            ward_hidden=False,
            max_steps=step_budget(False),
            must_move=forced != origin,
        )
    return prepare_pursuer_turn(secret, ward, hidden)


def auto_path(turn: PursuerTurn) -> list[Coord]:
    """Greedy BFS chase up to the step budget, with a forced patrol step if stuck"""
    path: list[Coord] = []
    pos = turn.origin
    for _ in range(turn.max_steps):
        step = next_step_toward(pos, turn.target)
        if step == pos:
            break
        pos = step
        path.append(pos)

    if turn.must_move and not path:
        forced = pick_any_pursuer_move(pos, turn.target)
        if forced != turn.origin:
            path.append(forced)
    return path


def validate_path(turn: PursuerTurn, path: list[Coord]) -> PathValidation:
    def fail(reason: str) -> PathValidation:
        return PathValidation(ok=False, reason=reason, max_steps=turn.max_steps, must_move=turn.must_move)

    if len(path) > turn.max_steps:
        return fail(f"path exceeds max steps ({len(path)}/{turn.max_steps})")
    if turn.must_move and not path:
        return fail("pursuer must move at least one step")

    cur = turn.origin
    for i, step in enumerate(path, start=1):
        if not in_bounds(step.x, step.y):
            return fail(f"out-of-bounds step at {step.x},{step.y}")
        if cur.manhattan(step) != 1:
            return fail(f"step {i} must be adjacent")
        if not can_move4(cur.x, cur.y, step.x, step.y) or not is_pursuer_passable(step.x, step.y):
            return fail(f"step {i} is blocked")
        cur = step

    return PathValidation(ok=True, max_steps=turn.max_steps, must_move=turn.must_move)


def pop_out_of_hide_tile(start: Coord, room: RoomCode) -> Coord | None:
    """Nearest walkable tile of the same room reachable from start without crossing a door"""
    seen = {start}
    queue: deque[Coord] = deque([start])
    while queue:
        cur = queue.popleft()
        for nx, ny in neighbours(cur.x, cur.y):
            if not in_bounds(nx, ny) or room_at(nx, ny) != room:
                continue
            if not can_move4(cur.x, cur.y, nx, ny):
                continue
            n = Coord(x=nx, y=ny)
            if n in seen:
                continue
            if is_ward_walkable(nx, ny):
                return n
            seen.add(n)
            queue.append(n)
    return None


def spawn_pursuer(ward: Coord | None, rng: random.Random) -> Coord:
    """
    Pick a pursuer start tile.

    Prefers tiles outside the ward's room at BFS distance >= 4, then relaxes to
    distance >= 2 in another room, then to any tile other than the ward's.
    """
    candidates = [
        Coord(x=x, y=y)
        for y in range(BOARD_H)
        for x in range(BOARD_W)
        if is_pursuer_passable(x, y)
    ]
    if ward is None:
        return rng.choice(candidates)

    ward_room = room_at(ward.x, ward.y)

    def far_enough(p: Coord, min_path: int) -> bool:
        if p == ward or room_at(p.x, p.y) == ward_room:
            return False
        d = bfs_distance(p, ward)
        return d is not None and d >= min_path

    safe = [p for p in candidates if far_enough(p, MIN_SPAWN_PATH)]
    if safe:
        return rng.choice(safe)

    logger.warning("No spawn tile satisfies the minimum path distance; relaxing spawn rules")
    relaxed = [p for p in candidates if far_enough(p, 2)]
    if relaxed:
        return rng.choice(relaxed)
    return rng.choice([p for p in candidates if p != ward])
