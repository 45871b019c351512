"""Hardware key provider using a PKCS#11 module (HSM, smart card, SoftHSM)."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import pkcs11
from pkcs11 import Attribute, KeyType, Mechanism, MGF, ObjectClass

from ..exceptions import DecryptionError, KeyNotFoundError, ProviderUnavailableError
from ..models import PublicKey
from .base import KeyBackend, KeyProvider

logger = logging.getLogger(__name__)

OAEP_SHA256_PARAMS = (Mechanism.SHA256, MGF.SHA256, None)

# Failures caused by the ciphertext itself; anything else is a provider fault.
CIPHERTEXT_ERRORS = (
    pkcs11.exceptions.EncryptedDataInvalid,
    pkcs11.exceptions.EncryptedDataLenRange,
    pkcs11.exceptions.MechanismParamInvalid,
)


class Pkcs11KeyBackend(KeyBackend):
    """RSA key addressed by its ``CKA_LABEL`` on a PKCS#11 token.

    Every operation opens its own session and closes it before returning.
    """

    def __init__(self, key_id: str, provider: "Pkcs11KeyProvider") -> None:
        super().__init__(key_id)
        self._provider = provider

    def _get_key(self, session: Any, object_class: ObjectClass) -> Any:
        try:
            return session.get_key(
                object_class=object_class, key_type=KeyType.RSA, label=self.key_id
            )
        except pkcs11.exceptions.NoSuchKey as exc:
            raise KeyNotFoundError(
                key_id=self.key_id, detail=f"not found in {self._provider.name}"
            ) from exc
        except pkcs11.exceptions.MultipleObjectsReturned as exc:
            logger.error(f"Label {self.key_id} is ambiguous on {self._provider.name}")
            raise KeyNotFoundError(
                key_id=self.key_id, detail=f"label is not unique in {self._provider.name}"
            ) from exc
        except pkcs11.exceptions.PKCS11Error as exc:
            raise ProviderUnavailableError(
                f"Key lookup for {self.key_id} failed on {self._provider.name}: {exc}"
            ) from exc

    def _export_public_key(self) -> PublicKey:
        with self._provider.session() as session:
            key = self._get_key(session, ObjectClass.PUBLIC_KEY)
            try:
                modulus = key[Attribute.MODULUS]
                exponent = key[Attribute.PUBLIC_EXPONENT]
            except pkcs11.exceptions.PKCS11Error as exc:
                raise ProviderUnavailableError(
                    f"Cannot read public key {self.key_id} on {self._provider.name}: {exc}"
                ) from exc
            public_key = PublicKey.from_bytes(modulus, exponent)
        logger.debug(f"Exported public key {self.key_id} from {self._provider.name}")
        return public_key

    def _decrypt(self, ciphertext: bytes) -> bytes:
        with self._provider.session() as session:
            key = self._get_key(session, ObjectClass.PRIVATE_KEY)
            try:
                return key.decrypt(
                    ciphertext,
                    mechanism=Mechanism.RSA_PKCS_OAEP,
                    mechanism_param=OAEP_SHA256_PARAMS,
                )
            except CIPHERTEXT_ERRORS as exc:
                raise DecryptionError() from exc
            except pkcs11.exceptions.PKCS11Error as exc:
                raise ProviderUnavailableError(
                    f"Decryption with {self.key_id} failed on {self._provider.name}: {exc}"
                ) from exc


class Pkcs11KeyProvider(KeyProvider):
    """Opens sessions on one token of a PKCS#11 module.

    The module is loaded on first use, so building a registry never touches
    the hardware. Either ``token_label`` or ``slot`` selects the token.
    """

    def __init__(
        self,
        module_path: str,
        token_label: Optional[str] = None,
        slot: Optional[int] = None,
        user_pin: Optional[str] = None,
        name: str = "pkcs11",
    ) -> None:
        self.name = name
        self.module_path = module_path
        self.token_label = token_label
        self.slot = slot
        self._user_pin = user_pin
        self._lib: Any = None
        self._lib_lock = threading.Lock()

    def _load_lib(self) -> Any:
        with self._lib_lock:
            if self._lib is None:
                logger.info(f"Loading PKCS#11 module {self.module_path}")
                try:
                    self._lib = pkcs11.lib(self.module_path)
                except Exception as exc:
                    logger.exception(f"Failed to load PKCS#11 module {self.module_path}")
                    raise ProviderUnavailableError(
                        f"Cannot load PKCS#11 module {self.module_path}: {exc}"
                    ) from exc
            return self._lib

    def get_token(self) -> Any:
        """Return the configured token."""
        lib = self._load_lib()
        try:
            if self.slot is not None:
                for slot in lib.get_slots(token_present=True):
                    if slot.slot_id == self.slot:
                        return slot.get_token()
                raise ProviderUnavailableError(f"No token present in slot {self.slot}")
            return lib.get_token(token_label=self.token_label)
        except pkcs11.exceptions.PKCS11Error as exc:
            raise ProviderUnavailableError(
                f"Token {self.token_label or self.slot} unavailable on {self.name}: {exc}"
            ) from exc

    @contextmanager
    def session(self) -> Iterator[Any]:
        """Open a read-only session that is closed when the block exits."""
        token = self.get_token()
        try:
            session = token.open(user_pin=self._user_pin)
        except pkcs11.exceptions.PKCS11Error as exc:
            raise ProviderUnavailableError(
                f"Cannot open session on {self.name}: {exc}"
            ) from exc
        with session:
            yield session

    def backend_for(self, key_id: str) -> Pkcs11KeyBackend:
        return Pkcs11KeyBackend(key_id, self)
