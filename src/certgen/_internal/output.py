"""Delivery of the issued key and certificate chain."""
import abc
import logging
import os
import sys
from typing import Callable
from typing import IO
from typing import Mapping
from typing import Optional

from certgen import errors
from certgen import util
from certgen._internal import constants
from certgen.configuration import IssuanceRequest

logger = logging.getLogger(__name__)


class CertificateOutput(metaclass=abc.ABCMeta):
    """Destination of ``key.pem`` and ``fullchain.pem``."""

    @abc.abstractmethod
    def announce(self) -> None:
        """Tell the user where the artifacts are going.

        :raises .errors.OutputError: if the destination is unusable

        """

    @abc.abstractmethod
    def write_artifact(self, name: str, content: bytes) -> None:
        """Deliver one artifact, unchanged."""

    def output(self, key_pem: bytes, fullchain_pem: str) -> None:
        """Announce, then deliver the key followed by the chain."""
        self.announce()
        self.write_artifact(constants.KEY_FILENAME, key_pem)
        self.write_artifact(constants.FULLCHAIN_FILENAME, fullchain_pem.encode())


class FileOutput(CertificateOutput):
    """Writes the artifacts into an existing directory."""

    def __init__(self, output_dir: str) -> None:
        self.output_dir = output_dir

    def announce(self) -> None:
        if not os.path.isdir(self.output_dir):
            raise errors.OutputError(
                "Output directory: '{0}' does not exist!".format(self.output_dir))
        logger.info("Saving certificates and key")

    def write_artifact(self, name: str, content: bytes) -> None:
        path = os.path.join(self.output_dir, name)
        chmod = 0o600 if name == constants.KEY_FILENAME else 0o644
        try:
            with util.safe_open(path, "wb", chmod=chmod) as artifact:
                artifact.write(content)
        except OSError as error:
            raise errors.OutputError("Unable to write {0}: {1}".format(path, error)) from error
        logger.info("- %s created", name)


class EphemeralOutput(CertificateOutput):
    """Prints the artifacts for manual copy-out.

    Used where the local filesystem does not outlive the process.

    """

    def __init__(self, common_name: str, stream: Optional[IO[str]] = None) -> None:
        self.common_name = common_name
        self.stream = stream or sys.stdout

    def announce(self) -> None:
        logger.info("You are running on an ephemeral platform, please copy-paste the "
                    "certificate and key for %s to your local machine", self.common_name)

    def write_artifact(self, name: str, content: bytes) -> None:
        logger.info("====== %s ======", name)
        self.stream.write(content.decode())
        if not content.endswith(b"\n"):
            self.stream.write("\n")
        self.stream.flush()


def is_ephemeral_environment(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Detect a platform with an ephemeral filesystem (Heroku dynos)."""
    if environ is None:
        environ = os.environ
    return constants.EPHEMERAL_ENV_MARKER in environ


def select_output(request: IssuanceRequest,
                  is_ephemeral: Callable[[], bool] = is_ephemeral_environment
                  ) -> CertificateOutput:
    """Pick the single sink of this run."""
    if is_ephemeral():
        return EphemeralOutput(request.common_name)
    return FileOutput(request.output_dir)
