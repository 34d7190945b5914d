"""Session with the ACME certificate authority."""
import logging
import platform
from typing import Iterable
from typing import Optional
from typing import Tuple

import josepy as jose
from josepy import ES256
from josepy import ES384
from josepy import ES512
from josepy import RS256
import requests

from acme import challenges
from acme import client as acme_client
from acme import errors as acme_errors
from acme import messages
import certgen
from certgen import errors
from certgen import util
from certgen._internal.poller import StatusPoller

logger = logging.getLogger(__name__)

PROTOCOL_ERRORS = (acme_errors.Error, requests.exceptions.RequestException)
"""Failures reported by the acme library or the HTTP transport."""


def acme_from_key(key: jose.JWK, server: str, verify_ssl: bool = True,
                  user_agent: Optional[str] = None) -> acme_client.ClientV2:
    """Wrangle ACME client construction"""
    if key.typ == 'EC':
        public_key = key.key
        if public_key.key_size == 256:
            alg = ES256
        elif public_key.key_size == 384:
            alg = ES384
        elif public_key.key_size == 521:
            alg = ES512
        else:
            raise errors.ConfigurationError(
                "No matching signing algorithm can be found for the key"
            )
    else:
        alg = RS256
    net = acme_client.ClientNetwork(key, alg=alg, verify_ssl=verify_ssl,
                                    user_agent=user_agent or determine_user_agent())

    directory = acme_client.ClientV2.get_directory(server, net)
    return acme_client.ClientV2(directory, net)


def determine_user_agent() -> str:
    """
    :returns: the client's User-Agent string
    :rtype: `str`
    """
    return "certgen/{0} Py/{1}".format(certgen.__version__, platform.python_version())


def error_fields(error: Exception) -> Tuple[Optional[str], Optional[str]]:
    """Extract the (type, detail) pair reported for a failure."""
    if isinstance(error, messages.Error):
        return error.code or error.typ, error.detail
    return type(error).__name__, str(error) or None


class CertificateAuthorityClient:
    """ACME session bound to one account key.

    All methods are network calls. Failures of the acme library or the
    transport are raised as the `certgen.errors.PhaseError` of the step
    that failed.

    :ivar key: account key
    :type key: :class:`josepy.JWK`
    :ivar str server: ACME directory URL
    :ivar poller: bounds the wait for order finalization
    :type poller: :class:`certgen._internal.poller.StatusPoller`

    """

    def __init__(self, key: jose.JWK, server: str, verify_ssl: bool = True,
                 user_agent: Optional[str] = None, poller: Optional[StatusPoller] = None,
                 acme: Optional[acme_client.ClientV2] = None) -> None:
        self.key = key
        self.server = server
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self.poller = poller or StatusPoller()
        self._acme = acme

    @property
    def acme(self) -> acme_client.ClientV2:
        """ACME client API, created on first use."""
        if self._acme is None:
            self._acme = acme_from_key(self.key, self.server, self.verify_ssl, self.user_agent)
        return self._acme

    def register(self, email: Optional[str]) -> None:
        """Create the account, or bind the existing one.

        An account that already exists for the key is a success, so
        registering again is safe.

        :raises .errors.RegistrationError: on any other failure

        """
        logger.info("Trying to register at the ACME server")
        try:
            self.acme.new_account(messages.NewRegistration.from_data(
                email=email, terms_of_service_agreed=True))
        except acme_errors.ConflictError as error:
            logger.info("- Already registered, account %s", error.location)
            self.acme.net.account = messages.RegistrationResource(
                uri=error.location, body=messages.Registration())
            return
        except PROTOCOL_ERRORS as error:
            typ, detail = error_fields(error)
            raise errors.RegistrationError(
                "Account registration failed", typ=typ, detail=detail) from error
        logger.info("- Registered as %s", email)

    def create_order(self, domains: Iterable[str], csr: util.CSR) -> messages.OrderResource:
        """Request an order for ``domains``.

        :param csr: CSR naming exactly ``domains``
        :type csr: :class:`certgen.util.CSR`

        :raises .errors.OrderCreationError: if the CA rejects the order
            or the order does not cover the requested domains

        """
        domains = list(domains)
        try:
            orderr = self.acme.new_order(csr.pem)
        except PROTOCOL_ERRORS as error:
            typ, detail = error_fields(error)
            raise errors.OrderCreationError(
                "The CA rejected the order", domain=" ".join(domains),
                typ=typ, detail=detail) from error
        identifiers = {identifier.value for identifier in orderr.body.identifiers}
        if identifiers != set(domains):
            raise errors.OrderCreationError(
                "The order identifiers {0} do not match the requested domains".format(
                    ", ".join(sorted(identifiers))), domain=" ".join(domains))
        return orderr

    def answer_challenge(self, challb: messages.ChallengeBody,
                         response: challenges.ChallengeResponse,
                         domain: Optional[str] = None) -> messages.ChallengeResource:
        """Ask the CA to validate the challenge.

        :raises .errors.ChallengeValidationError: if the CA refuses

        """
        try:
            return self.acme.answer_challenge(challb, response)
        except PROTOCOL_ERRORS as error:
            typ, detail = error_fields(error)
            raise errors.ChallengeValidationError(
                "The CA refused to validate the challenge", domain=domain,
                typ=typ, detail=detail) from error

    def poll_challenge(self, authzr: messages.AuthorizationResource,
                       challb: messages.ChallengeBody) -> messages.ChallengeBody:
        """Current state of ``challb``, fetched through its authorization.

        :raises .errors.AuthorizationError: if the authorization cannot
            be fetched or no longer holds the challenge

        """
        domain = authzr.body.identifier.value
        try:
            updated_authzr, _ = self.acme.poll(authzr)
        except PROTOCOL_ERRORS as error:
            typ, detail = error_fields(error)
            raise errors.AuthorizationError(
                "Unable to fetch the authorization", domain=domain,
                typ=typ, detail=detail) from error
        for current in updated_authzr.body.challenges:
            if current.uri == challb.uri:
                return current
        raise errors.AuthorizationError(
            "The authorization no longer holds the challenge {0}".format(challb.uri),
            domain=domain)

    def finalize(self, orderr: messages.OrderResource,
                 csr: util.CSR) -> messages.OrderResource:
        """Submit the CSR, then wait for the order to be issued.

        The wait is bounded by the poller: an order still ``pending``,
        ``ready`` or ``processing`` once the attempts are spent fails,
        like an ``invalid`` one.

        :returns: the ``valid`` order
        :raises .errors.FinalizationError: if no certificate was issued

        """
        orderr = orderr.update(csr_pem=csr.pem)
        try:
            orderr = self.acme.begin_finalization(orderr)
        except PROTOCOL_ERRORS as error:
            typ, detail = error_fields(error)
            raise errors.FinalizationError(
                "The CA rejected the CSR", typ=typ, detail=detail) from error

        def fetch_status() -> messages.Status:
            nonlocal orderr
            orderr = self._refresh_order(orderr)
            return orderr.body.status

        status = self.poller.poll(
            fetch_status, status=orderr.body.status,
            is_terminal=lambda s: s in (messages.STATUS_VALID, messages.STATUS_INVALID))

        if status == messages.STATUS_INVALID:
            typ, detail = (None, None)
            if orderr.body.error is not None:
                typ, detail = error_fields(orderr.body.error)
            raise errors.FinalizationError("The certificate order failed", typ=typ, detail=detail)
        if status != messages.STATUS_VALID:
            raise errors.FinalizationError(
                "The order was not finalized by the CA after {0} attempts".format(
                    self.poller.max_attempts), detail="Last status: {0}".format(status))
        if orderr.body.certificate is None:
            raise errors.FinalizationError("The valid order has no certificate URL")
        return orderr

    def fetch_certificate(self, orderr: messages.OrderResource) -> str:
        """Download the certificate chain of a ``valid`` order.

        :returns: fullchain PEM, exactly as served by the CA
        :raises .errors.FinalizationError: if it cannot be downloaded

        """
        if orderr.body.certificate is None:
            raise errors.FinalizationError("The order has no certificate URL")
        try:
            return self._post_as_get(orderr.body.certificate).text
        except PROTOCOL_ERRORS as error:
            typ, detail = error_fields(error)
            raise errors.FinalizationError(
                "Unable to download the certificate", typ=typ, detail=detail) from error

    def _refresh_order(self, orderr: messages.OrderResource) -> messages.OrderResource:
        try:
            response = self._post_as_get(orderr.uri)
        except PROTOCOL_ERRORS as error:
            typ, detail = error_fields(error)
            raise errors.FinalizationError(
                "Unable to fetch the order", typ=typ, detail=detail) from error
        return orderr.update(body=messages.Order.from_json(response.json()))

    def _post_as_get(self, url: str) -> requests.Response:
        return self.acme.net.post(url, None, new_nonce_url=self.acme.directory['newNonce'])
