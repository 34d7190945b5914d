"""Bounded status polling."""
import logging
import time
from typing import Callable
from typing import Optional
from typing import TypeVar

from acme import messages

from certgen._internal import constants

logger = logging.getLogger(__name__)

PENDING_STATUSES = (messages.STATUS_PENDING.name, messages.STATUS_PROCESSING.name)
"""Names of the statuses of a resource the CA is still working on."""

S = TypeVar('S')


def is_settled(status: object) -> bool:
    """Default terminal predicate: the CA is done with the resource.

    Accepts `acme.messages.Status` constants as well as their plain names.

    """
    return getattr(status, "name", status) not in PENDING_STATUSES


class StatusPoller:
    """Polls a status at a fixed interval, a bounded number of times.

    :ivar float interval: seconds to wait before each fetch
    :ivar int max_attempts: maximum number of fetches per `poll`

    """

    def __init__(self, interval: float = constants.POLL_INTERVAL,
                 max_attempts: int = constants.MAX_POLL_ATTEMPTS,
                 sleep: Optional[Callable[[float], None]] = None) -> None:
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep or time.sleep

    def poll(self, fetch_status: Callable[[], S], status: Optional[S] = None,
             is_terminal: Optional[Callable[[S], bool]] = None) -> Optional[S]:
        """Fetch the status until it is terminal or the attempts are spent.

        :param callable fetch_status: returns the current status from the CA
        :param status: last known status; no fetch happens if it is
            already terminal
        :param callable is_terminal: terminal predicate, `is_settled`
            by default

        :returns: the first terminal status, unchanged, or the last status
            observed when ``max_attempts`` fetches did not reach one

        """
        settled = is_terminal or is_settled
        attempts = 0
        while (status is None or not settled(status)) and attempts < self.max_attempts:
            logger.info("-- Counter: %d", attempts)
            self._sleep(self.interval)
            status = fetch_status()
            attempts += 1
        if status is None or not settled(status):
            logger.debug("Status still %s after %d attempts", status, attempts)
        return status
