"""Two-player lobby codes and shared session derivations"""

from .codes import (
    LOBBY_PREFIX,
    RESPONSE_PREFIX,
    decode_lobby_code,
    decode_response,
    derive_seed,
    derive_ward_spawn,
    encode_lobby_code,
    encode_response,
    fnv1a32,
    generate_session_id,
    is_account_address,
)

__all__ = [
    "LOBBY_PREFIX",
    "RESPONSE_PREFIX",
    "decode_lobby_code",
    "decode_response",
    "derive_seed",
    "derive_ward_spawn",
    "encode_lobby_code",
    "encode_response",
    "fnv1a32",
    "generate_session_id",
    "is_account_address",
]
