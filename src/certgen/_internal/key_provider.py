"""Account key resolution."""
import enum
import logging
import os
from typing import Optional

import josepy as jose
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from certgen import errors
from certgen._internal import constants
from certgen._internal.storage import RecordStorage
from certgen.configuration import PrivateKeySource

logger = logging.getLogger(__name__)


class KeySourceKind(enum.Enum):
    """Where the account key is read from."""
    RECORD = "record"
    FILE = "file"
    INLINE = "inline"


def resolve_kind(source: PrivateKeySource) -> KeySourceKind:
    """Decide which source holds the key.

    The persisted record wins when enabled, then an existing file, and
    otherwise the configured value is the key itself.

    :raises .errors.ConfigurationError: if no key identifier is configured
    :raises .errors.PathError: if the identifier names a directory

    """
    if not source.value:
        raise errors.ConfigurationError(
            "No private key is set, please check the private_key option of your configuration.")
    if os.path.isdir(source.path):
        raise errors.PathError("Can not open private key: {0} is a directory".format(source.path))
    if source.in_records:
        return KeySourceKind.RECORD
    if os.path.isfile(source.path):
        return KeySourceKind.FILE
    return KeySourceKind.INLINE


class PrivateKeyProvider:
    """Account key for one issuance attempt.

    The key is resolved on first use and kept for the lifetime of the
    provider.

    :ivar source: configured key identifier
    :type source: :class:`certgen.configuration.PrivateKeySource`
    :ivar storage: persisted records, used when the key is kept there
    :type storage: :class:`certgen._internal.storage.RecordStorage`

    """

    def __init__(self, source: PrivateKeySource, storage: RecordStorage) -> None:
        self.source = source
        self.storage = storage
        self._pem: Optional[bytes] = None
        self._jwk: Optional[jose.JWK] = None

    def private_key(self) -> bytes:
        """PEM encoded account key.

        :raises .errors.ConfigurationError: if the key is missing or
            cannot be read
        :raises .errors.PathError: if the key path is a directory

        """
        if self._pem is None:
            kind = resolve_kind(self.source)
            logger.debug("Loading account key from %s", kind.value)
            if kind is KeySourceKind.RECORD:
                pem = self._from_records()
            elif kind is KeySourceKind.FILE:
                pem = self._from_file()
            else:
                pem = self.source.value.encode()
            self._check(pem)
            self._pem = pem
        return self._pem

    def jwk(self) -> jose.JWK:
        """Account key wrapped for JWS signing."""
        if self._jwk is None:
            self._jwk = jose.JWK.load(self.private_key())
        return self._jwk

    def _from_records(self) -> bytes:
        value = self.storage.fetch(constants.SETTINGS_RECORD, "private_key")
        if not value:
            raise errors.ConfigurationError(
                "Empty private_key field in the {0} record!".format(constants.SETTINGS_RECORD))
        return value.encode() if isinstance(value, str) else value

    def _from_file(self) -> bytes:
        try:
            with open(self.source.path, "rb") as key_file:
                return key_file.read()
        except OSError as error:
            raise errors.ConfigurationError(
                "Can not open private key: {0}".format(self.source.path)) from error

    @staticmethod
    def _check(pem: bytes) -> None:
        try:
            serialization.load_pem_private_key(pem, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as error:
            raise errors.ConfigurationError(
                "The configured private key is not a valid unencrypted PEM key") from error
