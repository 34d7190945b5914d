"""End to end certificate issuance."""
import logging
import time
from typing import Callable
from typing import Optional

from certgen import configuration
from certgen import crypto_util
from certgen import errors
from certgen._internal.auth_handler import AuthorizationCoordinator
from certgen._internal.challenge import ChallengeResponder
from certgen._internal.challenge import select_publisher
from certgen._internal.client import CertificateAuthorityClient
from certgen._internal.key_provider import PrivateKeyProvider
from certgen._internal.output import is_ephemeral_environment
from certgen._internal.output import select_output
from certgen._internal.poller import StatusPoller
from certgen._internal.storage import RecordStorage

logger = logging.getLogger(__name__)


class Issuer:
    """Runs one issuance attempt.

    :ivar config: user configuration
    :type config: :class:`certgen.configuration.NamespaceConfig`
    :ivar request: what to issue, frozen for the attempt
    :type request: :class:`certgen.configuration.IssuanceRequest`

    """

    def __init__(self, config: configuration.NamespaceConfig,
                 is_ephemeral: Callable[[], bool] = is_ephemeral_environment,
                 client: Optional[CertificateAuthorityClient] = None,
                 storage: Optional[RecordStorage] = None,
                 sleep: Optional[Callable[[float], None]] = None) -> None:
        self.config = config
        self.request = configuration.IssuanceRequest.from_config(config)
        self.is_ephemeral = is_ephemeral
        self.storage = storage or RecordStorage(config.records_path)
        self.sleep = sleep or time.sleep
        self.poller = StatusPoller(sleep=self.sleep)
        self.key_provider = PrivateKeyProvider(self.request.key_source, self.storage)
        self._client = client

    @property
    def client(self) -> CertificateAuthorityClient:
        """CA session bound to the account key."""
        if self._client is None:
            self._client = CertificateAuthorityClient(
                self.key_provider.jwk(), self.request.server,
                verify_ssl=not self.config.no_verify_ssl, poller=self.poller)
        return self._client

    def issue(self) -> bool:
        """Obtain a certificate for the requested domains and deliver it.

        :returns: ``True`` once the artifacts are delivered, ``False`` if
            the output destination was unusable
        :rtype: bool

        :raises .errors.ConfigurationError: for an unusable account key
        :raises .errors.PathError: if the key path is a directory
        :raises .errors.PhaseError: if a step of the protocol fails

        """
        # Resolve the key before any network call.
        account_key = self.key_provider.jwk()
        client = self.client

        client.register(self.request.email)

        logger.info("Creating CSR")
        cert_key = crypto_util.generate_key(self.config.rsa_key_size)
        csr = crypto_util.generate_csr(cert_key, self.request.domains)
        logger.info("- CSR created")

        logger.info("Creating order")
        orderr = client.create_order(self.request.domains, csr)
        logger.info("- Order created")

        responder = ChallengeResponder(select_publisher(self.config, self.storage),
                                       sleep=self.sleep)
        coordinator = AuthorizationCoordinator(client, responder, self.poller, account_key)
        coordinator.handle_authorizations(orderr)

        logger.info("Finalizing order")
        orderr = client.finalize(orderr, csr)
        logger.info("- Order finalized")
        fullchain_pem = client.fetch_certificate(orderr)
        self._check_names(fullchain_pem)

        sink = select_output(self.request, self.is_ephemeral)
        try:
            sink.output(cert_key.pem, fullchain_pem)
        except errors.OutputError as error:
            logger.error("%s", error)
            logger.error("The certificate for %s is lost, it must be requested again.",
                         self.request.common_name)
            return False
        logger.info("Certificate has been generated")
        return True

    def _check_names(self, fullchain_pem: str) -> None:
        names = crypto_util.get_names_from_fullchain(fullchain_pem)
        if {name.lower() for name in names} != set(self.request.domains):
            raise errors.FinalizationError(
                "The issued certificate does not cover exactly the requested domains",
                domain=" ".join(self.request.domains),
                detail="Certificate names: {0}".format(", ".join(names)))
