"""ACME authorization handling."""
import logging
from typing import List

import josepy as jose

from acme import challenges
from acme import messages
from certgen import errors
from certgen._internal.challenge import ChallengeResponder
from certgen._internal.client import CertificateAuthorityClient
from certgen._internal.poller import StatusPoller

logger = logging.getLogger(__name__)


class AuthorizationCoordinator:
    """Validates the authorizations of an order, one domain at a time.

    Authorizations are processed in the order the CA lists them. The
    first domain that does not reach ``valid`` stops the whole order:
    the domains after it are neither published nor answered.

    :ivar client: CA session
    :type client: :class:`certgen._internal.client.CertificateAuthorityClient`
    :ivar responder: publishes the key authorizations
    :type responder: :class:`certgen._internal.challenge.ChallengeResponder`
    :ivar poller: bounds the wait for each validation
    :type poller: :class:`certgen._internal.poller.StatusPoller`
    :ivar account_key: key the key authorizations are computed with
    :type account_key: :class:`josepy.JWK`

    """

    def __init__(self, client: CertificateAuthorityClient, responder: ChallengeResponder,
                 poller: StatusPoller, account_key: jose.JWK) -> None:
        self.client = client
        self.responder = responder
        self.poller = poller
        self.account_key = account_key

    def handle_authorizations(self, orderr: messages.OrderResource
                              ) -> List[messages.AuthorizationResource]:
        """Validate every authorization of ``orderr``.

        :param acme.messages.OrderResource orderr: must have authorizations filled in

        :returns: the authorizations, all valid
        :rtype: list

        :raises .errors.AuthorizationError: if an authorization offers no
            http-01 challenge
        :raises .errors.ChallengeValidationError: on the first challenge
            that is not valid

        """
        authzrs = orderr.authorizations[:]
        if not authzrs:
            raise errors.AuthorizationError('No authorization to handle.')

        for authzr in authzrs:
            domain = authzr.body.identifier.value
            if authzr.body.status == messages.STATUS_VALID:
                logger.info("Authorization for %s is already valid", domain)
                continue
            self._authorize(authzr, domain)
        return authzrs

    def _authorize(self, authzr: messages.AuthorizationResource, domain: str) -> None:
        logger.info("Sending authorization request for: %s", domain)
        challb = select_http01(authzr)
        response, validation = challb.chall.response_and_validation(self.account_key)
        token = challb.chall.encode("token")

        self.responder.publish(token, validation)
        try:
            logger.info("- Requesting challenge verification")
            self.client.answer_challenge(challb, response, domain=domain)

            logger.info("- Waiting for challenge status")

            def fetch_status() -> messages.Status:
                nonlocal challb
                challb = self.client.poll_challenge(authzr, challb)
                return challb.status

            status = self.poller.poll(fetch_status)
        finally:
            self.responder.cleanup(token)

        if status == messages.STATUS_VALID:
            logger.info("- Verification valid")
            return
        logger.error("- Challenge verification failed")
        typ, detail = None, None
        if challb.error is not None:
            typ = challb.error.code or challb.error.typ
            detail = challb.error.detail
            logger.error("Error: %s: %s", typ, detail)
        elif status != messages.STATUS_INVALID:
            detail = "Validation not completed after {0} attempts".format(
                self.poller.max_attempts)
        raise errors.ChallengeValidationError(
            "Challenge verification failed", domain=domain, typ=typ, detail=detail)


def select_http01(authzr: messages.AuthorizationResource) -> messages.ChallengeBody:
    """Find the http-01 challenge of an authorization.

    :raises .errors.AuthorizationError: if the CA offers none

    """
    for challb in authzr.body.challenges:
        if isinstance(challb.chall, challenges.HTTP01):
            return challb
    raise errors.AuthorizationError(
        "The CA offered no http-01 challenge", domain=authzr.body.identifier.value)
