"""
Key derivation and authenticated encryption for save records.

KeyDerivation:
    PBKDF2-HMAC-SHA256(secret, salt[16], iterations) → key[32]

SaveCipher (encrypt-then-MAC):
    key[32] ─HKDF─┬→ AES-256-GCM key   → ciphertext
                  └→ HMAC-SHA256 key   → tag[32] over len(ad) ‖ ad ‖ nonce ‖ ciphertext

open() compares the HMAC tag in constant time before anything is decrypted,
so a tampered record never yields plaintext.

Randomness and the constant-time compare come from libsodium (pynacl);
the block cipher, HMAC and KDFs come from `cryptography`.
"""

import struct
import threading
from collections import OrderedDict
from typing import Union

import nacl.utils
from nacl.bindings import sodium_memcmp
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from Ainimo_Save.save_shared import config
from Ainimo_Save.save_shared.errors import AuthFailure


# ─── Random draws ───

def generate_salt() -> bytes:
    return nacl.utils.random(config.SALT_LENGTH)


def generate_nonce() -> bytes:
    """Fresh random nonce for one seal() call. Never a counter."""
    return nacl.utils.random(config.IV_LENGTH)


# ─── Key derivation ───

def derive_key(secret: bytes, salt: bytes, iterations: int) -> bytes:
    """PBKDF2-HMAC-SHA256 → 32-byte key. Deterministic for identical inputs."""
    if len(salt) != config.SALT_LENGTH:
        raise ValueError(f"salt must be {config.SALT_LENGTH} bytes, got {len(salt)}")
    if iterations <= 0:
        raise ValueError(f"iterations must be positive, got {iterations}")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=config.KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret)


class KeyDeriver:
    """Binds a secret and iteration count; remembers recent keys per salt.

    Derivation is deliberately slow, so the handful of most recent salts are
    cached. Safe to call from worker threads.
    """

    def __init__(
        self,
        secret: Union[str, bytes],
        iterations: int,
        cache_size: int = config.KEY_CACHE_SIZE,
    ):
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        self._secret = secret
        self._iterations = iterations
        self._cache_size = cache_size
        self._cache: OrderedDict[bytes, bytes] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @property
    def iterations(self) -> int:
        return self._iterations

    def derive(self, salt: bytes) -> bytes:
        with self._lock:
            key = self._cache.get(salt)
            if key is not None:
                self._cache.move_to_end(salt)
                self.hits += 1
                return key

            key = derive_key(self._secret, salt, self._iterations)
            self.misses += 1
            self._cache[salt] = key
            while len(self._cache) > self._cache_size:
                self._cache.popitem(last=False)
            return key


# ─── Authenticated cipher ───

class SaveCipher:
    """AES-256-GCM + HMAC-SHA256 over a single 32-byte key."""

    def seal(
        self,
        key: bytes,
        nonce: bytes,
        plaintext: bytes,
        associated_data: bytes = b"",
    ) -> tuple[bytes, bytes]:
        """Encrypt plaintext, returning (ciphertext, tag)."""
        self._check_inputs(key, nonce)
        enc_key, mac_key = self._split_key(key)

        ciphertext = AESGCM(enc_key).encrypt(nonce, plaintext, associated_data)
        tag = self._mac(mac_key, nonce, ciphertext, associated_data)
        return (ciphertext, tag)

    def open(
        self,
        key: bytes,
        nonce: bytes,
        ciphertext: bytes,
        tag: bytes,
        associated_data: bytes = b"",
    ) -> bytes:
        """Verify the tag, then decrypt. Raises AuthFailure on any mismatch."""
        self._check_inputs(key, nonce)
        enc_key, mac_key = self._split_key(key)

        expected = self._mac(mac_key, nonce, ciphertext, associated_data)
        if not sodium_memcmp(expected, tag):
            raise AuthFailure()

        try:
            return AESGCM(enc_key).decrypt(nonce, ciphertext, associated_data)
        except InvalidTag:
            raise AuthFailure("ciphertext failed AES-GCM verification")

    # ─── Private helpers ───

    @staticmethod
    def _check_inputs(key: bytes, nonce: bytes) -> None:
        if len(key) != config.KEY_LENGTH:
            raise ValueError(f"key must be {config.KEY_LENGTH} bytes, got {len(key)}")
        if len(nonce) != config.IV_LENGTH:
            raise ValueError(f"nonce must be {config.IV_LENGTH} bytes, got {len(nonce)}")

    @staticmethod
    def _split_key(key: bytes) -> tuple[bytes, bytes]:
        enc_key = HKDF(
            algorithm=hashes.SHA256(), length=32, salt=None, info=config.HKDF_ENC_INFO,
        ).derive(key)
        mac_key = HKDF(
            algorithm=hashes.SHA256(), length=32, salt=None, info=config.HKDF_MAC_INFO,
        ).derive(key)
        return (enc_key, mac_key)

    @staticmethod
    def _mac(mac_key: bytes, nonce: bytes, ciphertext: bytes, associated_data: bytes) -> bytes:
        h = hmac.HMAC(mac_key, hashes.SHA256())
        h.update(struct.pack(">I", len(associated_data)))
        h.update(associated_data)
        h.update(nonce)
        h.update(ciphertext)
        return h.finalize()
