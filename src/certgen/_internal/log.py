"""certgen logging setup.

Logging is configured in two steps around argument parsing:

1. `pre_arg_parse_setup` buffers every record in memory and shows only
   errors on stderr, since the verbosity is not known yet.
2. `post_arg_parse_setup` opens the rotating debug log in ``logs_dir``,
   replays the buffer into it and applies ``-v``/``-q`` to stderr.

Each step installs `post_arg_parse_except_hook` so an uncaught error is
logged and turned into a non-zero exit.

"""
import functools
import logging
import logging.handlers
import os
import sys
import traceback
from types import TracebackType
from typing import IO
from typing import Optional
from typing import Tuple
from typing import Type
from typing import cast

from acme import messages
from certgen import configuration
from certgen import errors
from certgen import util
from certgen._internal import constants

CLI_FMT = "%(message)s"
FILE_FMT = "%(asctime)s:%(levelname)s:%(name)s:%(message)s"
LOG_FILE_MAX_BYTES = 2 ** 20

logger = logging.getLogger(__name__)


def pre_arg_parse_setup() -> None:
    """Buffer all records and report only errors until arguments are parsed."""
    stderr_handler = ColoredStreamHandler()
    stderr_handler.setFormatter(logging.Formatter(CLI_FMT))
    stderr_handler.setLevel(constants.QUIET_LOGGING_LEVEL)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(MemoryHandler())
    root_logger.addHandler(stderr_handler)

    util.atexit_register(logging.shutdown)
    # the flags are read from argv directly, nothing is parsed yet
    _install_except_hook(debug='--debug' in sys.argv,
                         quiet='--quiet' in sys.argv or '-q' in sys.argv,
                         log_path=None)


def post_arg_parse_setup(config: configuration.NamespaceConfig) -> None:
    """Send the buffered and future records to the log file.

    Expects the handlers installed by `pre_arg_parse_setup` on the root
    logger.

    :param certgen.configuration.NamespaceConfig config: parsed configuration

    """
    file_handler, log_path = setup_log_file_handler(config, constants.LOG_FILENAME, FILE_FMT)

    root_logger = logging.getLogger()
    buffer = next(h for h in root_logger.handlers if isinstance(h, MemoryHandler))
    stderr_handler = next(
        h for h in root_logger.handlers if isinstance(h, ColoredStreamHandler))

    root_logger.addHandler(file_handler)
    root_logger.removeHandler(buffer)
    buffer.setTarget(file_handler)
    buffer.flush(force=True)
    buffer.close()

    level = terminal_level(config)
    stderr_handler.setLevel(level)
    logger.debug('Terminal logging level set at %d', level)

    if not config.quiet:
        print('Saving debug log to {0}'.format(log_path), file=sys.stderr)
    _install_except_hook(debug=config.debug, quiet=config.quiet, log_path=log_path)


def terminal_level(config: configuration.NamespaceConfig) -> int:
    """stderr level for ``-q`` and the number of ``-v`` flags."""
    if config.quiet:
        return constants.QUIET_LOGGING_LEVEL
    return constants.DEFAULT_LOGGING_LEVEL - 10 * config.verbose_count


def _install_except_hook(debug: bool, quiet: bool, log_path: Optional[str]) -> None:
    sys.excepthook = functools.partial(
        post_arg_parse_except_hook, debug=debug, quiet=quiet, log_path=log_path)


def setup_log_file_handler(config: configuration.NamespaceConfig, logfile: str,
                           fmt: str) -> Tuple[logging.Handler, str]:
    """Open ``logfile`` in ``config.logs_dir``, rotating the previous run away.

    :returns: the DEBUG level handler and the absolute log path
    :rtype: tuple

    :raises .errors.Error: if the log file cannot be opened

    """
    util.make_or_verify_dir(config.logs_dir, 0o700)
    log_path = os.path.join(config.logs_dir, logfile)
    try:
        handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=config.max_log_backups)
    except IOError as error:
        raise errors.Error(
            "Unable to open the log file {0}: {1}".format(log_path, error))
    # One file per run. Without backups every run appends to the same file.
    if config.max_log_backups:
        handler.doRollover()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=fmt))
    return handler, log_path


class ColoredStreamHandler(logging.StreamHandler):
    """Stream handler printing warnings and errors in red on a terminal.

    :ivar bool colored: the stream is a tty
    :ivar int red_level: lowest level printed in red

    """

    def __init__(self, stream: Optional[IO] = None) -> None:
        super().__init__(stream)
        self.colored = (sys.stderr if stream is None else stream).isatty()
        self.red_level = logging.WARNING

    def format(self, record: logging.LogRecord) -> str:
        out = super().format(record)
        if not self.colored or record.levelno < self.red_level:
            return out
        return util.ANSI_SGR_RED + out + util.ANSI_SGR_RESET


class MemoryHandler(logging.handlers.MemoryHandler):
    """Holds records until explicitly flushed into the log file.

    Unlike the standard handler, nothing is flushed on capacity or level,
    and closing keeps the target.

    """

    def __init__(self, target: Optional[logging.Handler] = None,
                 capacity: int = 10000) -> None:
        super().__init__(capacity, target=target)

    def close(self) -> None:
        target = self.target
        super().close()
        self.target = target

    def flush(self, force: bool = False) -> None:  # pylint: disable=arguments-differ
        """Replay the buffer into the target, only when ``force`` is set."""
        if force:
            super().flush()

    def shouldFlush(self, record: logging.LogRecord) -> bool:
        return False


def post_arg_parse_except_hook(exc_type: Type[BaseException], exc_value: BaseException,
                               trace: TracebackType, debug: bool, quiet: bool,
                               log_path: Optional[str]) -> None:
    """Log an uncaught exception and exit with a non-zero status.

    The traceback reaches the terminal only with ``debug`` or for
    exceptions that are not `Exception` subclasses; otherwise it goes to
    the debug log and the user sees a one line message.

    :param bool quiet: skip the advice pointing at the log file
    :param str log_path: debug log, ``None`` before it is opened

    """
    exc_info = (exc_type, exc_value, trace)
    if exc_type is KeyboardInterrupt:
        logger.error('Exiting due to user request.')
        sys.exit(1)
    if debug or not issubclass(exc_type, Exception):
        logger.error('Exiting abnormally:', exc_info=exc_info)
    else:
        logger.debug('Exiting abnormally:', exc_info=exc_info)
        logger.error(_describe(exc_type, exc_value))
    if quiet:
        sys.exit(1)
    exit_with_advice(log_path)


def _describe(exc_type: Type[BaseException], exc_value: BaseException) -> str:
    if issubclass(exc_type, errors.Error):
        return str(exc_value)
    if messages.is_acme_error(exc_value):
        description = describe_acme_error(cast(messages.Error, exc_value))
    else:
        description = ''.join(traceback.format_exception_only(exc_type, exc_value)).rstrip()
    return 'An unexpected error occurred:\n' + description


def exit_with_advice(log_path: Optional[str]) -> None:
    """Exit, pointing the user at the debug log or at ``-v``."""
    if log_path is None:
        sys.exit('Re-run certgen with -v for more details.')
    sys.exit('See the logfile {0} or re-run certgen with -v for more details.'.format(
        log_path))


def describe_acme_error(error: messages.Error) -> str:
    """Human readable form of an RFC 7807 problem document.

    :rtype: str

    """
    parts = [part for part in (error.title, error.detail) if part is not None]
    if parts:
        return ' :: '.join(parts)
    return error.description or error.typ
