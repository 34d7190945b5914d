"""Test utilities."""
import argparse
import copy
import datetime
import shutil
import tempfile
from typing import Any
from typing import Iterable
from typing import Optional
from typing import Sequence
import unittest

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
import josepy as jose

from acme import challenges
from acme import messages
from certgen import configuration
from certgen._internal import constants


def make_rsa_key_pem(bits: int = 2048) -> bytes:
    """Unencrypted PKCS#8 PEM of a fresh RSA key."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption())


ACCOUNT_KEY_PEM = make_rsa_key_pem()
JWK = jose.JWK.load(ACCOUNT_KEY_PEM)

HTTP01 = challenges.HTTP01(
    token=jose.b64decode(b"evaGxfADs6pSRb2LAv9IZf17Dt3juxGJ-PCt92wr-oA"))
HTTP01_2 = challenges.HTTP01(
    token=jose.b64decode(b"8ezj9wqxXJ1_EOhp9k1rDR1yMNEpxSfGaeCRpJ7lF1k"))
DNS01 = challenges.DNS01(token=b"17817c66b60ce2e4012dfad92657527a")


def make_namespace(**kwargs: Any) -> argparse.Namespace:
    """Namespace holding the CLI defaults, overridden by ``kwargs``."""
    values = copy.deepcopy(constants.CLI_DEFAULTS)
    values.update(kwargs)
    return argparse.Namespace(**values)


def make_config(**kwargs: Any) -> configuration.NamespaceConfig:
    """Configuration with the CLI defaults, overridden by ``kwargs``."""
    return configuration.NamespaceConfig(make_namespace(**kwargs))


def chall_to_challb(chall: challenges.Challenge, status: messages.Status,
                    error: Optional[messages.Error] = None,
                    uri: Optional[str] = None) -> messages.ChallengeBody:
    """Return ChallengeBody from Challenge."""
    kwargs = {
        "chall": chall,
        "uri": uri or chall.typ + "_uri",
        "status": status,
    }
    if error is not None:
        kwargs["error"] = error
    if status == messages.STATUS_VALID:
        kwargs["validated"] = datetime.datetime.now()

    return messages.ChallengeBody(**kwargs)


def gen_authzr(authz_status: messages.Status, domain: str,
               challbs: Sequence[messages.ChallengeBody]) -> messages.AuthorizationResource:
    """Generate an authorization resource.

    :param authz_status: Status object
    :type authz_status: :class:`acme.messages.Status`
    :param str domain: identifier of the authorization
    :param list challbs: ChallengeBody objects

    """
    return messages.AuthorizationResource(
        uri="https://trusted.ca/authz/" + domain,
        body=messages.Authorization(
            identifier=messages.Identifier(typ=messages.IDENTIFIER_FQDN, value=domain),
            challenges=tuple(challbs),
            status=authz_status))


def gen_orderr(domains: Iterable[str], authzrs: Sequence[messages.AuthorizationResource],
               status: messages.Status = messages.STATUS_PENDING,
               certificate: Optional[str] = None) -> messages.OrderResource:
    """Generate an order resource covering ``domains``."""
    return messages.OrderResource(
        uri="https://trusted.ca/order/1",
        body=messages.Order(
            identifiers=[messages.Identifier(typ=messages.IDENTIFIER_FQDN, value=domain)
                         for domain in domains],
            status=status,
            authorizations=[authzr.uri for authzr in authzrs],
            finalize="https://trusted.ca/order/1/finalize",
            certificate=certificate),
        authorizations=list(authzrs))


def make_fullchain(domains: Sequence[str]) -> str:
    """PEM of a self-signed certificate for ``domains``."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    now = datetime.datetime.now(datetime.timezone.utc)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])])
    cert = x509.CertificateBuilder(
        issuer_name=name,
        subject_name=name,
        public_key=key.public_key(),
        serial_number=x509.random_serial_number(),
        not_valid_before=now,
        not_valid_after=now + datetime.timedelta(days=90),
    ).add_extension(
        x509.SubjectAlternativeName([x509.DNSName(domain) for domain in domains]),
        critical=False,
    ).sign(
        private_key=key,
        algorithm=hashes.SHA256(),
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode()


class TempDirTestCase(unittest.TestCase):
    """Base test class which sets up and tears down a temporary directory"""

    def setUp(self):
        """Execute before test"""
        self.tempdir = tempfile.mkdtemp()

    def tearDown(self):
        """Execute after test"""
        shutil.rmtree(self.tempdir)
