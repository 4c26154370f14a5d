import logging
import os
import sys
import tempfile
import unittest

from logging_setup import LOG_FORMAT, configure_logging


class TestConfigureLogging(unittest.TestCase):
    def tearDown(self):
        configure_logging(console=False)

    def test_log_file_created(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "logs", "engine.log")
            configure_logging(level=logging.DEBUG, log_file=path, console=False)
            logging.getLogger("channel_detector").debug("hello")
            for handler in logging.getLogger().handlers:
                handler.flush()

            with open(path, encoding="utf-8") as f:
                self.assertIn("hello", f.read())
            configure_logging(console=False)

    def test_level_applied(self):
        configure_logging(level=logging.WARNING, console=False)
        root = logging.getLogger()
        self.assertEqual(root.level, logging.WARNING)
        self.assertTrue(all(isinstance(h, logging.NullHandler) for h in root.handlers))

    def test_console_goes_to_stderr(self):
        configure_logging()
        handlers = logging.getLogger().handlers
        self.assertEqual(len(handlers), 1)
        self.assertIs(handlers[0].stream, sys.stderr)
        self.assertEqual(handlers[0].formatter._fmt, LOG_FORMAT)


if __name__ == "__main__":
    unittest.main()
