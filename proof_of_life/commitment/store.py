# ABOUTME: Session-scoped secret store holding the encrypted pursuer coordinate and salt.
# ABOUTME: Sole producer of local commitments; AES-GCM encryption under a key that dies with the session.

import base64
import hashlib
import json
import os
import random
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from loguru import logger
from pydantic import BaseModel, ValidationError

from proof_of_life.engine.movement import spawn_pursuer
from proof_of_life.models.secret import SecretState
from proof_of_life.models.session import Coord

from .exceptions import SecretDecryptionError, SecretNotInitialized

_COMMIT_DOMAIN = b"proof-of-life/commitment/v1"
_NONCE_BYTES = 12


class SecretKey:
    """
    Ephemeral 256-bit AES-GCM key created with a session.

    The key material is never persisted and never rendered by repr/str.
    """

    __slots__ = ("_material",)

    def __init__(self, material: bytes):
        if len(material) != 32:
            raise ValueError("SecretKey requires 32 bytes of key material")
        self._material = material

    @classmethod
    def generate(cls) -> "SecretKey":
        return cls(AESGCM.generate_key(bit_length=256))

    def cipher(self) -> AESGCM:
        return AESGCM(self._material)

    def __repr__(self) -> str:
        return "SecretKey(<redacted>)"

    __str__ = __repr__


class EncryptedSecret(BaseModel):
    """Opaque ciphertext of a SecretState"""

    nonce_b64: str
    cipher_b64: str

    model_config = {"frozen": True}


def random_salt() -> int:
    """Non-zero random u32"""
    return secrets.randbelow(0xFFFFFFFF) + 1


def commit(x: int, y: int, salt: int) -> str:
    """Domain-separated SHA-256 commitment to (x, y, salt) as 0x-prefixed 32-byte hex"""
    payload = _COMMIT_DOMAIN + x.to_bytes(4, "big") + y.to_bytes(4, "big") + salt.to_bytes(4, "big")
    return "0x" + hashlib.sha256(payload).hexdigest()


class SecretStore:
    """
    Holds the evader's secret for one session, encrypted at rest in memory.

    Usage:
        >>> key = SecretKey.generate()
        >>> store = SecretStore(key, session_id=7)
        >>> secret = store.create(ward=Coord(x=5, y=5))
        >>> store.load() == secret
        True
    """

    def __init__(self, key: SecretKey, session_id: int):
        self._key = key
        self.session_id = session_id
        self._blob: EncryptedSecret | None = None

    def __repr__(self) -> str:
        return f"SecretStore(session_id={self.session_id}, armed={self._blob is not None})"

    def _aad(self) -> bytes:
        return f"session:{self.session_id}".encode()

    def encrypt(self, secret: SecretState) -> EncryptedSecret:
        nonce = os.urandom(_NONCE_BYTES)
        plaintext = json.dumps(secret.model_dump(mode="json"), sort_keys=True).encode()
        ct = self._key.cipher().encrypt(nonce, plaintext, self._aad())
        return EncryptedSecret(
            nonce_b64=base64.b64encode(nonce).decode(),
            cipher_b64=base64.b64encode(ct).decode(),
        )

    def decrypt(self, blob: EncryptedSecret) -> SecretState:
        """
        Decrypt and validate a secret.

        Raises:
            SecretDecryptionError: On any authentication, decoding or schema failure
        """
        try:
            nonce = base64.b64decode(blob.nonce_b64, validate=True)
            ct = base64.b64decode(blob.cipher_b64, validate=True)
            plaintext = self._key.cipher().decrypt(nonce, ct, self._aad())
            return SecretState.model_validate(json.loads(plaintext))
        except (InvalidTag, ValueError, ValidationError) as e:
            logger.error(f"Secret decryption failed for session {self.session_id}: {type(e).__name__}")
            raise SecretDecryptionError(
                f"Decryption failed: invalid key or corrupted data (session {self.session_id})"
            ) from e

    def put(self, secret: SecretState) -> None:
        self._blob = self.encrypt(secret)

    def load(self) -> SecretState:
        if self._blob is None:
            raise SecretNotInitialized(f"No secret stored for session {self.session_id}")
        return self.decrypt(self._blob)

    @property
    def is_armed(self) -> bool:
        return self._blob is not None

    def create(self, ward: Coord | None, rng: random.Random | None = None) -> SecretState:
        """Spawn the pursuer, draw a salt, compute the initial commitment and store it"""
        rng = rng or random.Random(secrets.randbits(64))
        pursuer = spawn_pursuer(ward, rng)
        salt = random_salt()
        start = ward or Coord(x=5, y=5)
        secret = SecretState(
            pursuer=pursuer,
            salt=salt,
            commitment_hex=commit(pursuer.x, pursuer.y, salt),
            last_known_ward=start,
            seen_ward=[start],
        )
        self.put(secret)
        logger.bind(session=self.session_id).info("Pursuer secret created")
        return secret

    def move_to(self, secret: SecretState, pos: Coord) -> SecretState:
        """Move the pursuer, recompute its commitment under the same salt, and store"""
        moved = secret.model_copy(
            update={"pursuer": pos, "commitment_hex": commit(pos.x, pos.y, secret.salt)}
        )
        self.put(moved)
        return moved

    def adopt_commitment(self, secret: SecretState, commitment_hex: str) -> SecretState:
        """Replace the local commitment with one returned by the prover"""
        adopted = secret.model_copy(update={"commitment_hex": commitment_hex})
        self.put(adopted)
        return adopted

    def discard(self) -> None:
        self._blob = None
