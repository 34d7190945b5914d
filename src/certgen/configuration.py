"""certgen user-supplied configuration."""
import argparse
import logging
import os
from typing import Any
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Tuple

from certgen import errors
from certgen import util
from certgen._internal import constants

logger = logging.getLogger(__name__)


class NamespaceConfig:
    """Configuration wrapper around :class:`argparse.Namespace`.

    Paths given relative in the configuration (``private_key`` when it
    names a file, ``challenge_dir``, ``output_cert_dir`` and
    ``records_path``) are resolved against
    :attr:`~certgen.configuration.NamespaceConfig.base_dir`.

    :ivar namespace: Namespace typically produced by
        :meth:`argparse.ArgumentParser.parse_args`.
    :type namespace: :class:`argparse.Namespace`

    """

    def __init__(self, namespace: argparse.Namespace) -> None:
        self.namespace: argparse.Namespace
        # Avoid recursion loop because of the delegation defined in __setattr__
        object.__setattr__(self, 'namespace', namespace)

        self.namespace.base_dir = os.path.abspath(self.namespace.base_dir)
        self.namespace.logs_dir = os.path.abspath(self.namespace.logs_dir)

    # Delegate any attribute not explicitly defined to the underlying namespace object.

    def __getattr__(self, name: str) -> Any:
        return getattr(self.namespace, name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self.namespace, name, value)

    @property
    def domains(self) -> List[str]:
        """Requested domains, in order and without duplicates.

        Each ``--domains`` value may itself hold several space separated
        names.
        """
        names: List[str] = []
        for value in self.namespace.domains or []:
            for name in value.split():
                name = util.enforce_domain_sanity(name)
                if name not in names:
                    names.append(name)
        return names

    @property
    def server(self) -> str:
        """ACME Directory Resource URI."""
        if self.namespace.staging:
            return constants.STAGING_URI
        return self.namespace.server

    @property
    def challenge_dir(self) -> str:
        """Directory served at ``/.well-known/acme-challenge``.

        Empty when challenge responses go to the persisted records.
        """
        if not self.namespace.challenge_dir:
            return ""
        return self.resolve_path(self.namespace.challenge_dir)

    @property
    def output_dir(self) -> str:
        """Directory receiving ``key.pem`` and ``fullchain.pem``."""
        return self.resolve_path(self.namespace.output_cert_dir)

    @property
    def records_path(self) -> str:
        """JSON file holding the persisted records."""
        return self.resolve_path(self.namespace.records_path)

    def resolve_path(self, path: str) -> str:
        """Absolute version of ``path``, relative to the base directory."""
        return os.path.join(self.namespace.base_dir, os.path.expanduser(path))


class PrivateKeySource(NamedTuple):
    """Where the account key comes from.

    :ivar str value: configured identifier, either a path or the PEM itself
    :ivar bool in_records: the key is kept in the persisted settings record
    :ivar str base_dir: directory relative paths are resolved against

    """
    value: Optional[str]
    in_records: bool
    base_dir: str

    @property
    def path(self) -> str:
        """The identifier read as a file path."""
        return os.path.join(self.base_dir, os.path.expanduser(self.value or ""))


class IssuanceRequest(NamedTuple):
    """Input of one issuance attempt. Immutable once built."""
    domains: Tuple[str, ...]
    email: Optional[str]
    server: str
    key_source: PrivateKeySource
    output_dir: str
    cert_name: Optional[str] = None

    @property
    def common_name(self) -> str:
        """Certificate label: the explicit name or the first domain."""
        return self.cert_name or self.domains[0]

    @classmethod
    def from_config(cls, config: NamespaceConfig) -> 'IssuanceRequest':
        """Build the request from user configuration.

        :raises .errors.ConfigurationError: if no domain is configured

        """
        domains = tuple(config.domains)
        if not domains:
            raise errors.ConfigurationError(
                "No domain is set, please check the domains option of your configuration.")
        return cls(
            domains=domains,
            email=config.email or None,
            server=config.server,
            key_source=PrivateKeySource(
                value=config.private_key,
                in_records=bool(config.private_key_in_records),
                base_dir=config.base_dir),
            output_dir=config.output_dir,
            cert_name=config.cert_name or None)
