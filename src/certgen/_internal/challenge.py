"""HTTP-01 challenge response publishing."""
import abc
import errno
import logging
import os
import time
from typing import Callable
from typing import Optional

from certgen import configuration
from certgen import errors
from certgen._internal import constants
from certgen._internal.storage import RecordStorage

logger = logging.getLogger(__name__)


class Publisher(metaclass=abc.ABCMeta):
    """Makes a key authorization reachable by the CA validator."""

    @abc.abstractmethod
    def publish(self, token: str, content: str) -> None:
        """Expose ``content`` for ``token``."""

    @abc.abstractmethod
    def cleanup(self, token: str) -> None:
        """Withdraw what `publish` exposed for ``token``."""


class FilesystemPublisher(Publisher):
    """Writes responses into a directory served by an existing web server.

    The directory must be served at ``/.well-known/acme-challenge``.

    """

    def __init__(self, challenge_dir: str) -> None:
        self.challenge_dir = challenge_dir

    def _validation_path(self, token: str) -> str:
        return os.path.join(self.challenge_dir, token)

    def publish(self, token: str, content: str) -> None:
        logger.debug("Creating challenge validation dir at %s", self.challenge_dir)
        # World-readable, owner-writable
        old_umask = os.umask(0o022)
        try:
            try:
                os.makedirs(self.challenge_dir, 0o755)
            except OSError as exception:
                if exception.errno != errno.EEXIST:
                    raise errors.PathError(
                        "Couldn't create root for http-01 challenge responses: {0}".format(
                            exception))
            if not os.path.isdir(self.challenge_dir):
                raise errors.PathError(
                    "{0} exists, but it is not a directory".format(self.challenge_dir))

            validation_path = self._validation_path(token)
            logger.debug("Attempting to save validation to %s", validation_path)
            with open(validation_path, "wb") as validation_file:
                validation_file.write(content.encode())
            os.chmod(validation_path, 0o644)
        finally:
            os.umask(old_umask)

    def cleanup(self, token: str) -> None:
        validation_path = self._validation_path(token)
        logger.debug("Removing %s", validation_path)
        try:
            os.remove(validation_path)
        except FileNotFoundError:
            logger.debug("%s was already removed", validation_path)


class RecordPublisher(Publisher):
    """Writes responses into the persisted challenge record.

    The record holds a single response at a time; it is served by the
    ``serve`` command or any responder reading the same storage.

    """

    def __init__(self, storage: RecordStorage) -> None:
        self.storage = storage

    def publish(self, token: str, content: str) -> None:
        logger.debug("Storing the response for token %s in the %s record",
                     token, constants.CHALLENGE_RECORD)
        self.storage.put(constants.CHALLENGE_RECORD, "response", content)
        self.storage.save()

    def cleanup(self, token: str) -> None:
        # Overwritten by the next publish.
        logger.debug("Leaving the %s record in place for token %s",
                     constants.CHALLENGE_RECORD, token)


def select_publisher(config: configuration.NamespaceConfig,
                     storage: RecordStorage) -> Publisher:
    """Pick the backend from the challenge directory setting alone.

    :returns: a `FilesystemPublisher` if a challenge directory is set,
        a `RecordPublisher` otherwise

    """
    if config.challenge_dir:
        return FilesystemPublisher(config.challenge_dir)
    return RecordPublisher(storage)


class ChallengeResponder:
    """Publishes challenge responses and waits until they are visible.

    :ivar publisher: backend exposing the responses
    :type publisher: `Publisher`
    :ivar float delay: seconds to wait after each publish

    """

    def __init__(self, publisher: Publisher, delay: float = constants.PUBLISH_DELAY,
                 sleep: Optional[Callable[[float], None]] = None) -> None:
        self.publisher = publisher
        self.delay = delay
        self._sleep = sleep or time.sleep

    def publish(self, token: str, content: str) -> None:
        """Expose ``content`` for ``token``, then wait ``delay`` seconds."""
        self.publisher.publish(token, content)
        if self.delay > 0:
            self._sleep(self.delay)

    def cleanup(self, token: str) -> None:
        """Withdraw the response for ``token``."""
        self.publisher.cleanup(token)
