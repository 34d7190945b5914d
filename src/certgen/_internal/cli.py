"""certgen command line argument & config processing."""
import argparse
import logging
from typing import Any
from typing import List
from typing import Optional

import configargparse

import certgen
from certgen._internal import constants

logger = logging.getLogger(__name__)

VERBS = ("issue", "serve")

SHORT_USAGE = """
  certgen [SUBCOMMAND] [options] -d DOMAIN [-d DOMAIN] ...

certgen obtains a certificate from an ACME CA, proving control of each
domain with the http-01 challenge. The default subcommand is issue:

  issue     Obtain a certificate and save key.pem and fullchain.pem
  serve     Answer http-01 challenges stored in the records file
"""


def flag_default(name: str) -> Any:
    """Default value for CLI flag."""
    return constants.CLI_DEFAULTS[name]


class _DomainsAction(argparse.Action):
    """Action class for accumulating domains."""

    def __call__(self, parser: argparse.ArgumentParser, namespace: argparse.Namespace,
                 domain: Any, option_string: Optional[str] = None) -> None:
        # A new list avoids sharing the default between parses.
        namespace.domains = list(namespace.domains or []) + [domain]


def nonnegative_int(value: str) -> int:
    """Converts value to an int and checks that it is not negative.

    :param str value: value to convert

    :returns: value as an int
    :rtype: int

    :raises argparse.ArgumentTypeError: if value isn't a non-negative integer

    """
    try:
        int_value = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("value must be an integer")

    if int_value < 0:
        raise argparse.ArgumentTypeError("value must be non-negative")
    return int_value


def determine_verb(args: List[str]) -> str:
    """Pops the subcommand out of ``args``, ``issue`` if none is given."""
    for i, token in enumerate(args):
        if token in VERBS:
            args.pop(i)
            return token
    return flag_default("verb")


def build_parser() -> configargparse.ArgParser:
    """Parser for every option, from the command line, config files or
    ``CERTGEN_*`` environment variables."""
    parser = configargparse.ArgParser(
        prog="certgen",
        usage=SHORT_USAGE,
        args_for_setting_config_path=["-c", "--config"],
        default_config_files=flag_default("config_files"),
        config_arg_help_message="path to config file (default: {0})".format(
            " and ".join(flag_default("config_files"))),
        auto_env_var_prefix=constants.ENV_PREFIX)

    parser.add_argument(
        "-v", "--verbose", dest="verbose_count", action="count",
        default=flag_default("verbose_count"), help="This flag can be used "
        "multiple times to incrementally increase the verbosity of output, "
        "e.g. -vvv.")
    parser.add_argument(
        "-q", "--quiet", dest="quiet", action="store_true",
        default=flag_default("quiet"),
        help="Silence all output except errors.")
    parser.add_argument(
        "--debug", action="store_true", default=flag_default("debug"),
        help="Show tracebacks in case of errors")
    parser.add_argument(
        "--max-log-backups", type=nonnegative_int,
        default=flag_default("max_log_backups"),
        help="Specifies the maximum number of backup logs that should "
             "be kept by the built in log rotation. Setting this "
             "flag to 0 disables log rotation entirely, causing "
             "certgen to always append to the same log file.")
    parser.add_argument(
        "--version", action="version", version="%(prog)s {0}".format(certgen.__version__))

    issue = parser.add_argument_group("issue", description="Certificate request")
    issue.add_argument(
        "-d", "--domains", "--domain", dest="domains",
        metavar="DOMAIN", action=_DomainsAction,
        default=flag_default("domains"),
        help="Domain names to include. For multiple domains you can use "
             "multiple -d flags or enter a space separated list of domains "
             "as a parameter. The first domain provided will be the "
             "subject CN of the certificate.")
    issue.add_argument(
        "--cert-name", dest="cert_name", metavar="CERTNAME",
        default=flag_default("cert_name"),
        help="Label used in the output instead of the first domain.")
    issue.add_argument(
        "-m", "--email", default=flag_default("email"),
        help="Email used for registration and recovery contact.")
    issue.add_argument(
        "--server", default=flag_default("server"),
        help="ACME Directory Resource URI. (default: %(default)s)")
    issue.add_argument(
        "--staging", "--test-cert", dest="staging", action="store_true",
        default=flag_default("staging"),
        help="Use the staging server to obtain test (invalid) certificates")
    issue.add_argument(
        "--no-verify-ssl", action="store_true", default=flag_default("no_verify_ssl"),
        help="Disable verification of the ACME server's certificate.")
    issue.add_argument(
        "--rsa-key-size", type=int, metavar="N", default=flag_default("rsa_key_size"),
        help="Size of the RSA key of the certificate. (default: %(default)s)")

    paths = parser.add_argument_group("paths", description="Keys, challenges and outputs")
    paths.add_argument(
        "--private-key", dest="private_key", default=flag_default("private_key"),
        help="Account key: a path to a PEM file, relative to --base-dir, "
             "or the PEM text itself.")
    paths.add_argument(
        "--private-key-in-records", dest="private_key_in_records", action="store_true",
        default=flag_default("private_key_in_records"),
        help="Read the account key from the settings record of the records file.")
    paths.add_argument(
        "--challenge-dir", dest="challenge_dir", default=flag_default("challenge_dir"),
        help="Directory served at /.well-known/acme-challenge. When empty, "
             "challenge responses go to the records file.")
    paths.add_argument(
        "--output-cert-dir", dest="output_cert_dir",
        default=flag_default("output_cert_dir"),
        help="Existing directory receiving key.pem and fullchain.pem. "
             "(default: %(default)s)")
    paths.add_argument(
        "--records-path", dest="records_path", default=flag_default("records_path"),
        help="JSON file holding the challenge and settings records. "
             "(default: %(default)s)")
    paths.add_argument(
        "--base-dir", dest="base_dir", default=flag_default("base_dir"),
        help="Directory relative paths are resolved against. (default: %(default)s)")
    paths.add_argument(
        "--logs-dir", dest="logs_dir", default=flag_default("logs_dir"),
        help="Logs directory. (default: %(default)s)")

    serve = parser.add_argument_group("serve", description="http-01 responder")
    serve.add_argument(
        "--http-01-port", type=int, dest="http01_port",
        default=flag_default("http01_port"),
        help="Port used by the serve subcommand. (default: %(default)s)")
    serve.add_argument(
        "--http-01-address", dest="http01_address",
        default=flag_default("http01_address"),
        help="The address the serve subcommand binds to. (default: all)")
    return parser


def prepare_and_parse_args(args: List[str]) -> argparse.Namespace:
    """Returns parsed command line arguments.

    :param list args: command line arguments with the program name removed

    :returns: parsed command line arguments
    :rtype: argparse.Namespace

    """
    args = list(args)
    verb = determine_verb(args)
    parsed_args = build_parser().parse_args(args)
    parsed_args.verb = verb
    return parsed_args
