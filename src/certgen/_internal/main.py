"""certgen main entry point."""
import logging
import sys
from typing import List
from typing import Optional
from typing import Union

import certgen
from certgen import configuration
from certgen import errors
from certgen._internal import cli
from certgen._internal import log
from certgen._internal import responder
from certgen._internal.issuer import Issuer
from certgen._internal.storage import RecordStorage

logger = logging.getLogger(__name__)


def issue(config: configuration.NamespaceConfig) -> Optional[Union[str, int]]:
    """Obtain a certificate and deliver it.

    :returns: `None` on success, an error message if it was not delivered
    :rtype: None or str

    """
    issuer = Issuer(config)
    try:
        delivered = issuer.issue()
    except errors.PhaseError as error:
        logger.error("Issuance stopped at the %s step.", error.phase)
        raise
    if not delivered:
        return "The certificate could not be delivered."
    return None


def serve(config: configuration.NamespaceConfig) -> None:
    """Answer http-01 challenges published in the records file."""
    responder.serve(RecordStorage(config.records_path),
                    address=config.http01_address, port=config.http01_port)


VERBS = {
    "issue": issue,
    "serve": serve,
}


def main(cli_args: Optional[List[str]] = None) -> Optional[Union[str, int]]:
    """Run certgen.

    :param cli_args: command line to certgen, defaults to ``sys.argv[1:]``
    :type cli_args: `list` of `str`

    :returns: value for `sys.exit` about the exit status of certgen
    :rtype: `str` or `int` or `None`

    """
    if cli_args is None:
        cli_args = sys.argv[1:]

    log.pre_arg_parse_setup()

    logger.debug("certgen version: %s", certgen.__version__)
    logger.debug("Location of certgen entry point: %s", sys.argv[0])
    # do not log `config`, as it may hold the private key itself
    logger.debug("Arguments: %r", [arg for arg in cli_args if "PRIVATE KEY" not in arg])

    # note: arg parser internally handles --help (and exits afterwards)
    args = cli.prepare_and_parse_args(cli_args)
    config = configuration.NamespaceConfig(args)

    log.post_arg_parse_setup(config)

    return VERBS[config.verb](config)


if __name__ == "__main__":
    sys.exit(main())  # pragma: no cover
