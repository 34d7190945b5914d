"""Utilities for all certgen."""
import atexit
import errno
import logging
import os
from typing import Any
from typing import Callable
from typing import IO
from typing import NamedTuple
from typing import Tuple

from certgen import errors

logger = logging.getLogger(__name__)


class Key(NamedTuple):
    """PEM-formatted private key generated for one certificate."""
    pem: bytes


class CSR(NamedTuple):
    """PEM-formatted CSR and the names it was built for."""
    pem: bytes
    domains: Tuple[str, ...]


# Colors text red
ANSI_SGR_RED = "\033[31m"
# Resets output format
ANSI_SGR_RESET = "\033[0m"


def make_or_verify_dir(directory: str, mode: int = 0o755) -> None:
    """Make sure directory exists.

    :param str directory: Path to a directory.
    :param int mode: Directory mode.

    :raises .errors.PathError: if the path exists but is not a directory

    """
    try:
        os.makedirs(directory, mode)
    except OSError as exception:
        if exception.errno != errno.EEXIST:
            raise
        if not os.path.isdir(directory):
            raise errors.PathError(f"{directory} exists, but it is not a directory")


def safe_open(path: str, mode: str = "w", chmod: int = 0o644) -> IO:
    """Open a file for writing, truncating it, with the given permissions.

    :param str path: Path to a file.
    :param str mode: Same os `mode` for `open`.
    :param int chmod: Permissions of a newly created file.

    """
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, chmod)
    return os.fdopen(fd, mode)


def enforce_domain_sanity(domain: str) -> str:
    """Validate a requested domain name.

    :param str domain: Domain to check
    :raises ConfigurationError: for names that cannot be validated with
        the http-01 challenge

    :returns: The domain, lowercased and without trailing dot
    :rtype: str
    """
    try:
        domain.encode('ascii')
    except UnicodeError:
        raise errors.ConfigurationError("Non-ASCII domain names not supported. "
            "To issue for an Internationalized Domain Name, use Punycode.")

    domain = domain.lower()
    domain = domain[:-1] if domain.endswith('.') else domain

    for scheme in ["http", "https"]:
        if domain.startswith("{0}://".format(scheme)):
            raise errors.ConfigurationError(
                "Requested name {0} appears to be a URL, not a FQDN. "
                "Try again without the leading \"{1}://\".".format(domain, scheme))

    if domain.startswith("*."):
        raise errors.ConfigurationError(
            "Wildcard domain {0} cannot be validated with the http-01 challenge.".format(domain))

    # RFC 2181: at most 255 octets, each label 1 - 63 octets
    msg = "Requested domain {0} is not a FQDN because".format(domain)
    if len(domain) > 255:
        raise errors.ConfigurationError("{0} it is too long.".format(msg))
    for label in domain.split('.'):
        if not label:
            raise errors.ConfigurationError("{0} it contains an empty label.".format(msg))
        if len(label) > 63:
            raise errors.ConfigurationError("{0} label {1} is too long.".format(msg, label))

    return domain


def atexit_register(func: Callable, *args: Any, **kwargs: Any) -> None:
    """Sets func to be called before the program exits.

    Special care is taken to ensure func is only called when the process
    that first imports this module exits rather than any child processes.

    :param function func: function to be called in case of an error

    """
    atexit.register(_atexit_call, func, *args, **kwargs)


def _atexit_call(func: Callable, *args: Any, **kwargs: Any) -> None:
    if _INITIAL_PID == os.getpid():
        func(*args, **kwargs)


_INITIAL_PID = os.getpid()
