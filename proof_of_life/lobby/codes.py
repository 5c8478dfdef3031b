# ABOUTME: Shareable two-player lobby codes (POL1- invitations, POL1R- responses) and session id helpers.
# ABOUTME: Codes are base64url JSON without padding and carry no secrets, only addresses and ids.

import base64
import json
import re
import secrets

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from proof_of_life.models.lobby import LobbyCode, LobbyResponse
from proof_of_life.models.session import Coord
from proof_of_life.world.floorplan import BOARD_H, BOARD_W, is_ward_walkable

LOBBY_PREFIX = "POL1-"
RESPONSE_PREFIX = "POL1R-"

ACCOUNT_ADDRESS = re.compile(r"^G[A-Z2-7]{55}$")

DEFAULT_WARD = Coord(x=5, y=5)


def is_account_address(value: str) -> bool:
    """True for a ledger public account id ('G' + 55 base32 characters)"""
    return isinstance(value, str) and bool(ACCOUNT_ADDRESS.match(value.strip()))


def _to_base64url(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _from_base64url(encoded: str) -> str:
    padded = encoded + "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")


def _decode_payload(raw: str, prefix: str) -> dict | None:
    trimmed = raw.strip()
    if not trimmed.startswith(prefix):
        return None
    try:
        obj = json.loads(_from_base64url(trimmed[len(prefix):]))
    except (ValueError, UnicodeDecodeError) as e:
        logger.debug(f"Undecodable {prefix} code: {e}")
        return None
    if not isinstance(obj, dict) or obj.get("v") != 1:
        return None
    if not isinstance(obj.get("sid"), int) or isinstance(obj.get("sid"), bool):
        return None
    return obj


def encode_lobby_code(code: LobbyCode) -> str:
    return LOBBY_PREFIX + _to_base64url(json.dumps(code.model_dump(), separators=(",", ":")))


def decode_lobby_code(raw: str) -> LobbyCode | None:
    """Parse an invitation; any malformed, tampered or foreign code yields None"""
    obj = _decode_payload(raw, LOBBY_PREFIX)
    if obj is None:
        return None
    if not is_account_address(obj.get("d", "")) or not obj.get("net") or not obj.get("cid"):
        return None
    try:
        return LobbyCode.model_validate(obj)
    except PydanticValidationError:
        return None


def encode_response(resp: LobbyResponse) -> str:
    return RESPONSE_PREFIX + _to_base64url(json.dumps(resp.model_dump(), separators=(",", ":")))


def decode_response(raw: str) -> LobbyResponse | None:
    obj = _decode_payload(raw, RESPONSE_PREFIX)
    if obj is None or not is_account_address(obj.get("a", "")):
        return None
    try:
        return LobbyResponse.model_validate(obj)
    except PydanticValidationError:
        return None


def generate_session_id() -> int:
    """Random non-zero u32"""
    return secrets.randbelow(0xFFFFFFFF) + 1


def fnv1a32(text: str) -> int:
    h = 0x811C9DC5
    for ch in text:
        h ^= ord(ch)
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h


def derive_seed(session_id: int, dispatcher: str, evader: str, tag: str) -> int:
    """Seed both clients derive identically from the session and its players"""
    return fnv1a32(f"{tag}|{session_id & 0xFFFFFFFF}|{dispatcher}|{evader}") or 1


def derive_ward_spawn(session_id: int, dispatcher: str, evader: str) -> Coord:
    """Ward start tile shared by both two-player clients"""
    spawnable = [
        Coord(x=x, y=y)
        for y in range(BOARD_H)
        for x in range(BOARD_W)
        if is_ward_walkable(x, y)
    ]
    if not spawnable:
        return DEFAULT_WARD
    return spawnable[derive_seed(session_id, dispatcher, evader, "ward") % len(spawnable)]
