"""Tests for certgen._internal.log."""
import io
import logging
import logging.handlers
import os
import sys
import unittest
from unittest import mock

import pytest

from acme import messages
from certgen import errors
from certgen import util
from certgen._internal import constants
import certgen._internal.tests.util as test_util


class PreArgParseSetupTest(unittest.TestCase):
    """Tests for certgen._internal.log.pre_arg_parse_setup."""

    @classmethod
    def _call(cls):
        from certgen._internal.log import pre_arg_parse_setup
        return pre_arg_parse_setup()

    @mock.patch('certgen._internal.log.sys')
    @mock.patch('certgen._internal.log.post_arg_parse_except_hook')
    @mock.patch('certgen._internal.log.logging.getLogger')
    @mock.patch('certgen._internal.log.util.atexit_register')
    def test_it(self, mock_register, mock_get, mock_except_hook, mock_sys):
        from certgen._internal.log import ColoredStreamHandler
        from certgen._internal.log import MemoryHandler
        mock_sys.argv = ['certgen', '--debug']
        self._call()

        mock_root_logger = mock_get()
        mock_root_logger.setLevel.assert_called_once_with(logging.DEBUG)
        handlers = [call[0][0] for call in mock_root_logger.addHandler.call_args_list]
        assert [type(handler) for handler in handlers] == [MemoryHandler, ColoredStreamHandler]
        assert handlers[1].level == constants.QUIET_LOGGING_LEVEL

        mock_register.assert_called_once_with(logging.shutdown)
        mock_sys.excepthook(1, 2, 3)
        mock_except_hook.assert_called_once_with(
            1, 2, 3, debug=True, quiet=False, log_path=None)
        for handler in handlers:
            handler.close()


class PostArgParseSetupTest(test_util.TempDirTestCase):
    """Tests for certgen._internal.log.post_arg_parse_setup."""

    @classmethod
    def _call(cls, *args, **kwargs):
        from certgen._internal.log import post_arg_parse_setup
        return post_arg_parse_setup(*args, **kwargs)

    def setUp(self):
        super().setUp()
        self.config = test_util.make_config(
            logs_dir=os.path.join(self.tempdir, 'logs'), max_log_backups=1000)

        from certgen._internal.log import ColoredStreamHandler
        from certgen._internal.log import MemoryHandler
        self.stream_handler = ColoredStreamHandler(io.StringIO())
        self.target = logging.StreamHandler(io.StringIO())
        self.memory_handler = MemoryHandler(self.target)
        self.root_logger = mock.MagicMock(
            handlers=[self.memory_handler, self.stream_handler])

    def tearDown(self):
        self.memory_handler.close()
        self.stream_handler.close()
        self.target.close()
        super().tearDown()

    def _common(self):
        with mock.patch('certgen._internal.log.logging.getLogger') as mock_get_logger:
            mock_get_logger.return_value = self.root_logger
            except_hook_path = 'certgen._internal.log.post_arg_parse_except_hook'
            with mock.patch(except_hook_path) as mock_except_hook:
                with mock.patch('certgen._internal.log.sys') as mock_sys:
                    self._call(self.config)

        log_path = os.path.join(self.config.logs_dir, 'certgen.log')

        self.root_logger.removeHandler.assert_called_once_with(self.memory_handler)
        file_handler = self.root_logger.addHandler.call_args[0][0]
        file_handler.close()
        assert isinstance(file_handler, logging.handlers.RotatingFileHandler)
        assert os.path.exists(log_path)
        mock_sys.excepthook(1, 2, 3)
        mock_except_hook.assert_called_once_with(
            1, 2, 3, debug=self.config.debug, quiet=self.config.quiet, log_path=log_path)
        return mock_sys

    def test_default_level(self):
        mock_sys = self._common()
        assert self.stream_handler.level == constants.DEFAULT_LOGGING_LEVEL
        assert mock_sys.stderr.write.called

    def test_verbose(self):
        self.config.verbose_count = 2
        self._common()
        assert self.stream_handler.level == logging.INFO - 20

    def test_quiet(self):
        self.config.quiet = True
        mock_sys = self._common()
        assert self.stream_handler.level == constants.QUIET_LOGGING_LEVEL
        assert not mock_sys.stderr.write.called

    def test_debug(self):
        self.config.debug = True
        self._common()


class SetupLogFileHandlerTest(test_util.TempDirTestCase):
    """Tests for certgen._internal.log.setup_log_file_handler."""

    @classmethod
    def _call(cls, *args, **kwargs):
        from certgen._internal.log import setup_log_file_handler
        return setup_log_file_handler(*args, **kwargs)

    def setUp(self):
        super().setUp()
        self.config = test_util.make_config(
            logs_dir=os.path.join(self.tempdir, 'logs'), max_log_backups=42)

    @mock.patch('certgen._internal.log.logging.handlers.RotatingFileHandler')
    def test_failure(self, mock_handler):
        mock_handler.side_effect = IOError
        with pytest.raises(errors.Error) as excinfo:
            self._call(self.config, 'test.log', '%(message)s')
        assert self.config.logs_dir in str(excinfo.value)

    def test_success_with_rollover(self):
        self._test_success_common(should_rollover=True)

    def test_success_without_rollover(self):
        self.config.max_log_backups = 0
        self._test_success_common(should_rollover=False)

    def _test_success_common(self, should_rollover):
        log_file = 'test.log'
        handler, log_path = self._call(self.config, log_file, '%(message)s')
        handler.close()

        assert handler.level == logging.DEBUG
        assert log_path == os.path.join(self.config.logs_dir, log_file)
        backup_path = os.path.join(self.config.logs_dir, log_file + '.1')
        assert os.path.exists(backup_path) == should_rollover

    @mock.patch('certgen._internal.log.logging.handlers.RotatingFileHandler')
    def test_max_log_backups_used(self, mock_handler):
        self._call(self.config, 'test.log', '%(message)s')
        assert mock_handler.call_args[1]['backupCount'] == 42


class ColoredStreamHandlerTest(unittest.TestCase):
    """Tests for certgen._internal.log.ColoredStreamHandler"""

    def setUp(self):
        self.stream = io.StringIO()
        self.stream.isatty = lambda: True
        self.logger = logging.getLogger('certgen.tests.colored')
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        from certgen._internal.log import ColoredStreamHandler
        self.handler = ColoredStreamHandler(self.stream)
        self.logger.addHandler(self.handler)

    def tearDown(self):
        self.logger.removeHandler(self.handler)
        self.handler.close()

    def test_format(self):
        msg = 'I did a thing'
        self.logger.debug(msg)
        assert self.stream.getvalue() == '{0}\n'.format(msg)

    def test_format_and_red_level(self):
        msg = 'I did another thing'
        self.handler.red_level = logging.DEBUG
        self.logger.debug(msg)

        assert self.stream.getvalue() == \
            '{0}{1}{2}\n'.format(util.ANSI_SGR_RED, msg, util.ANSI_SGR_RESET)


class MemoryHandlerTest(unittest.TestCase):
    """Tests for certgen._internal.log.MemoryHandler"""

    def setUp(self):
        self.logger = logging.getLogger(__name__)
        self.logger.setLevel(logging.DEBUG)
        self.msg = 'hi there'
        self.stream = io.StringIO()

        self.stream_handler = logging.StreamHandler(self.stream)
        from certgen._internal.log import MemoryHandler
        self.handler = MemoryHandler(self.stream_handler)
        self.logger.addHandler(self.handler)

    def tearDown(self):
        self.logger.removeHandler(self.handler)
        self.handler.close()
        self.stream_handler.close()

    def test_flush(self):
        self.logger.debug(self.msg)
        self.handler.flush(force=True)
        assert self.stream.getvalue() == self.msg + '\n'

    def test_not_flushed(self):
        # By default, logging.ERROR messages and higher are flushed
        self.logger.critical(self.msg)
        self.handler.flush()
        assert self.stream.getvalue() == ''

    def test_target_kept_on_close(self):
        self.handler.close()
        assert self.handler.target is self.stream_handler


class PostArgParseExceptHookTest(unittest.TestCase):
    """Tests for certgen._internal.log.post_arg_parse_except_hook."""

    @classmethod
    def _call(cls, *args, **kwargs):
        from certgen._internal.log import post_arg_parse_except_hook
        return post_arg_parse_except_hook(*args, **kwargs)

    def setUp(self):
        self.error_msg = 'test error message'
        self.log_path = 'foo.log'

    def test_base_exception(self):
        mock_logger, output = self._test_common(BaseException, debug=False)
        self._assert_exception_logged(mock_logger.error, BaseException)
        assert 'See the logfile' in output
        assert self.log_path in output

    def test_debug(self):
        mock_logger, output = self._test_common(ValueError, debug=True)
        self._assert_exception_logged(mock_logger.error, ValueError)
        assert 'See the logfile' in output

    def test_quiet(self):
        mock_logger, output = self._test_common(ValueError, debug=True, quiet=True)
        self._assert_exception_logged(mock_logger.error, ValueError)
        assert 'See the logfile' not in output

    def test_phase_error(self):
        def phase_error(msg):
            return errors.ChallengeValidationError(msg, domain='a.com', detail='no record')

        mock_logger, output = self._test_common(phase_error, debug=False)
        self._assert_exception_logged(mock_logger.debug, errors.ChallengeValidationError)
        assert self.error_msg in output
        assert 'a.com' in output

    def test_acme_error(self):
        acme_code = next(iter(messages.ERROR_CODES))

        def get_acme_error(msg):
            """Wraps ACME errors so the constructor takes only a msg."""
            return messages.Error.with_code(acme_code, detail=msg)

        mock_logger, output = self._test_common(get_acme_error, debug=False)
        self._assert_exception_logged(mock_logger.debug, messages.Error)
        assert self.error_msg in output
        assert messages.ERROR_PREFIX not in output

    def test_other_error(self):
        mock_logger, output = self._test_common(ValueError, debug=False)
        self._assert_exception_logged(mock_logger.debug, ValueError)
        assert self.error_msg in output

    def test_no_log_file(self):
        _, output = self._test_common(ValueError, debug=False, log_path=None)
        assert 'Re-run certgen with -v' in output

    def test_keyboardinterrupt(self):
        mock_logger, _ = self._test_common(KeyboardInterrupt, debug=False)
        mock_logger.error.assert_called_once_with('Exiting due to user request.')

    def _test_common(self, error_type, debug, quiet=False, log_path='foo.log'):
        """Returns the mocked logger and stderr output."""
        mock_err = io.StringIO()

        def write_err(*args, **unused_kwargs):
            """Write error to mock_err."""
            mock_err.write(args[0])

        try:
            raise error_type(self.error_msg)
        except BaseException:
            exc_info = sys.exc_info()
            with mock.patch('certgen._internal.log.logger') as mock_logger:
                mock_logger.error.side_effect = write_err
                with pytest.raises(SystemExit) as excinfo:
                    self._call(*exc_info, debug=debug, quiet=quiet, log_path=log_path)
                mock_err.write(str(excinfo.value))

        return mock_logger, mock_err.getvalue()

    @staticmethod
    def _assert_exception_logged(log_func, exc_type):
        assert log_func.called
        call_kwargs = log_func.call_args[1]
        assert call_kwargs['exc_info'] == (exc_type, mock.ANY, mock.ANY)


class DescribeAcmeErrorTest(unittest.TestCase):
    """Tests for certgen._internal.log.describe_acme_error."""

    @classmethod
    def _call(cls, typ="urn:ietf:params:acme:error:badCSR", title=None, detail=None):
        from certgen._internal.log import describe_acme_error
        return describe_acme_error(messages.Error(typ=typ, title=title, detail=detail))

    def test_title_and_detail(self):
        assert self._call(title="Bad CSR", detail="key too weak") == "Bad CSR :: key too weak"
        assert self._call(detail="key too weak") == "key too weak"

    def test_description(self):
        assert self._call() == messages.ERROR_CODES["badCSR"]

    def test_unknown_type(self):
        assert self._call(typ="https://ca.example/custom") == "https://ca.example/custom"


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
