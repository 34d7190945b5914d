"""HTTP-01 responder serving the persisted challenge record."""
import functools
import http.client as http_client
import http.server as BaseHTTPServer
import logging
import socket
from typing import Any
from typing import Optional
from typing import Tuple

from acme import challenges
from certgen import errors
from certgen._internal import constants
from certgen._internal.storage import RecordStorage

logger = logging.getLogger(__name__)

CHALLENGE_PREFIX = "/" + challenges.HTTP01.URI_ROOT_PATH + "/"


def lookup_response(storage: RecordStorage, token: str) -> Optional[str]:
    """Stored key authorization for ``token``, if the record holds one.

    The record is read again on every call since another process
    publishes into it.

    """
    if not token or "/" in token:
        return None
    storage.reload()
    content = storage.fetch(constants.CHALLENGE_RECORD, "response")
    if content and content.startswith(token + "."):
        return content
    return None


class HTTP01RecordRequestHandler(BaseHTTPServer.BaseHTTPRequestHandler):
    """Answers ``/.well-known/acme-challenge/<token>`` from the records.

    :ivar storage: records written by the record challenge backend
    :type storage: :class:`certgen._internal.storage.RecordStorage`

    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.storage: RecordStorage = kwargs.pop("storage")
        super().__init__(*args, **kwargs)

    def log_message(self, format: str, *args: Any) -> None:  # pylint: disable=redefined-builtin
        """Log arbitrary message."""
        logger.debug("%s - - %s", self.client_address[0], format % args)

    def do_GET(self) -> None:  # pylint: disable=invalid-name,missing-function-docstring
        if self.path.startswith(CHALLENGE_PREFIX):
            self.handle_challenge(self.path[len(CHALLENGE_PREFIX):])
        else:
            self.handle_404()

    def handle_challenge(self, token: str) -> None:
        """Serve the key authorization of ``token``."""
        try:
            content = lookup_response(self.storage, token)
        except errors.StorageError as error:
            logger.warning("Unable to read the challenge record: %s", error)
            content = None
        if content is None:
            self.log_message("%s does not correspond to any resource. ignoring", self.path)
            self.handle_404()
            return
        self.log_message("Serving HTTP01 with token %r", token)
        self.send_response(http_client.OK)
        self.send_header("Content-Type", "text/plain")
        self.end_headers()
        self.wfile.write(content.encode())

    def handle_404(self) -> None:
        """Handler 404 Not Found errors."""
        self.send_response(http_client.NOT_FOUND, message="Not Found")
        self.send_header("Content-type", "text/html")
        self.end_headers()
        self.wfile.write(b"404")

    @classmethod
    def partial_init(cls, storage: RecordStorage
                     ) -> 'functools.partial[HTTP01RecordRequestHandler]':
        """Partially initialize this handler.

        This is useful because `socketserver.BaseServer` takes
        uninitialized handler and initializes it with the current
        request.

        """
        return functools.partial(cls, storage=storage)


class HTTP01RecordServer(BaseHTTPServer.HTTPServer):
    """HTTP server for the challenge record."""

    def __init__(self, server_address: Tuple[str, int], storage: RecordStorage,
                 ipv6: bool = False) -> None:
        if ipv6:
            self.address_family = socket.AF_INET6
        super().__init__(server_address, HTTP01RecordRequestHandler.partial_init(storage))


def serve(storage: RecordStorage, address: str = "",
          port: int = challenges.HTTP01Response.PORT) -> None:
    """Answer challenges until interrupted."""
    server = HTTP01RecordServer((address, port), storage)
    host, bound_port = server.socket.getsockname()[:2]
    logger.info("Serving http-01 responses from %s on %s:%d", storage.path, host, bound_port)
    try:
        server.serve_forever()
    finally:
        server.server_close()
