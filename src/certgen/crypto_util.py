"""certgen crypto utility functions."""
import logging
from typing import Iterable
from typing import List

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.hazmat.primitives.serialization import NoEncryption
from cryptography.hazmat.primitives.serialization import PrivateFormat

from acme import crypto_util as acme_crypto_util
from certgen import errors
from certgen import util

logger = logging.getLogger(__name__)


def make_key(bits: int = 2048) -> bytes:
    """Generate PEM encoded RSA key.

    :param int bits: Number of bits. At least 2048.

    :returns: new RSA key in PEM (PKCS#8) form
    :rtype: bytes

    """
    if bits < 2048:
        raise errors.ConfigurationError("Unsupported RSA key length: {}".format(bits))
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    return key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=NoEncryption()
    )


def generate_key(bits: int) -> util.Key:
    """Generate a fresh certificate key.

    :param int bits: RSA key size in bits

    :rtype: :class:`certgen.util.Key`

    """
    logger.debug("Generating key (%d bits)", bits)
    return util.Key(make_key(bits))


def generate_csr(privkey: util.Key, names: Iterable[str]) -> util.CSR:
    """Build a CSR for the given names, signed with ``privkey``.

    :param privkey: Key to include in the CSR
    :type privkey: :class:`certgen.util.Key`
    :param names: `str` names to include in the CSR

    :returns: CSR
    :rtype: :class:`certgen.util.CSR`

    """
    domains = tuple(names)
    csr_pem = acme_crypto_util.make_csr(privkey.pem, domains=list(domains))
    return util.CSR(csr_pem, domains)


def get_names_from_fullchain(fullchain_pem: str) -> List[str]:
    """Get the DNS names of the leaf certificate of a PEM chain.

    :param str fullchain_pem: leaf certificate followed by intermediates

    :returns: Common Name and DNS subjectAltNames of the leaf
    :rtype: `list` of `str`

    """
    try:
        leaf = x509.load_pem_x509_certificate(fullchain_pem.encode())
    except ValueError as error:
        raise errors.FinalizationError(
            "The CA returned a certificate that cannot be parsed") from error
    return acme_crypto_util.get_names_from_subject_and_extensions(
        leaf.subject, leaf.extensions)
