"""
StateSealer — turns serialized state into a storable record and back.

    seal:  plaintext → fresh salt → KeyDeriver → fresh nonce → SaveCipher.seal → envelope text
    open:  envelope text → decode_payload → KeyDeriver(salt) → SaveCipher.open → plaintext

Both directions are CPU bound (PBKDF2) and are meant to run off the event
loop. When encryption is disabled the record is the plaintext JSON itself.
"""

from typing import Optional

from Ainimo_Save.save_shared import config
from Ainimo_Save.save_shared.crypto_engine import (
    KeyDeriver,
    SaveCipher,
    generate_nonce,
    generate_salt,
)
from Ainimo_Save.save_shared.errors import FormatError, SecretMissingError
from Ainimo_Save.save_shared.payload import (
    associated_data,
    decode_payload,
    encode_payload,
    looks_like_envelope,
    looks_like_plaintext_state,
)
from Ainimo_Save.save_shared.types import CryptoConfig, EncryptedPayload


class StateSealer:
    def __init__(self, crypto_config: CryptoConfig, secret: Optional[str]):
        self.config = crypto_config
        self._cipher = SaveCipher()
        self._deriver: Optional[KeyDeriver] = None

        if secret:
            self._deriver = KeyDeriver(secret, crypto_config.key_derivation_iterations)
        elif crypto_config.enabled:
            raise SecretMissingError(config.ENV_STORAGE_SECRET)

    @property
    def encrypting(self) -> bool:
        return self.config.enabled

    def seal(self, plaintext: bytes) -> str:
        if not self.config.enabled:
            return plaintext.decode("utf-8")

        salt = generate_salt()
        nonce = generate_nonce()
        key = self._deriver.derive(salt)
        ad = associated_data(config.PAYLOAD_VERSION, salt)
        ciphertext, tag = self._cipher.seal(key, nonce, plaintext, ad)

        return encode_payload(EncryptedPayload(
            version=config.PAYLOAD_VERSION,
            iv=nonce,
            salt=salt,
            ciphertext=ciphertext,
            hmac=tag,
        ))

    def is_plaintext_record(self, raw: str) -> bool:
        """True when raw is an unencrypted record this sealer may accept."""
        if not looks_like_plaintext_state(raw):
            return False
        return not self.config.enabled or self.config.allow_plaintext_migration

    def open(self, raw: str) -> bytes:
        """Return verified plaintext for a stored record.

        Raises FormatError for undecodable records and AuthFailure when the
        tag does not verify.
        """
        if self.is_plaintext_record(raw):
            return raw.encode("utf-8")

        if not looks_like_envelope(raw):
            if looks_like_plaintext_state(raw):
                raise FormatError("unencrypted record refused while encryption is enabled")
            raise FormatError("record is neither an envelope nor a game state")

        payload = decode_payload(raw)
        if self._deriver is None:
            raise SecretMissingError(config.ENV_STORAGE_SECRET)

        key = self._deriver.derive(payload.salt)
        ad = associated_data(payload.version, payload.salt)
        return self._cipher.open(key, payload.iv, payload.ciphertext, payload.hmac, ad)
