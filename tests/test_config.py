import logging
import os
import unittest
from unittest import mock

from shopdb.config import DEFAULT_DB_PATH, Config
from shopdb.utils.logger import get_logger


class ConfigTestCase(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            cfg = Config.from_env(dotenv=False)
        self.assertEqual(cfg.db_path, DEFAULT_DB_PATH)
        self.assertEqual(cfg.pool_size, 5)
        self.assertEqual(cfg.busy_timeout, 5.0)
        self.assertEqual(cfg.init_scripts, ())
        self.assertFalse(cfg.debug)

    def test_from_env(self):
        env = {
            "SHOPDB_PATH": "/tmp/shop.sqlite",
            "SHOPDB_POOL_SIZE": "2",
            "SHOPDB_BUSY_TIMEOUT": "0.5",
            "SHOPDB_INIT_SCRIPTS": "a.sql, b.sql,,",
            "DEBUG": "true",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            cfg = Config.from_env(dotenv=False)
        self.assertEqual(cfg.db_path, "/tmp/shop.sqlite")
        self.assertEqual(cfg.pool_size, 2)
        self.assertEqual(cfg.busy_timeout, 0.5)
        self.assertEqual(cfg.init_scripts, ("a.sql", "b.sql"))
        self.assertTrue(cfg.debug)

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            Config(pool_size=0)
        with self.assertRaises(ValueError):
            Config(busy_timeout=-1)
        with mock.patch.dict(os.environ, {"SHOPDB_POOL_SIZE": "many"}, clear=True):
            with self.assertRaises(ValueError):
                Config.from_env(dotenv=False)


class LoggerTestCase(unittest.TestCase):
    def test_single_handler_and_level(self):
        logger = get_logger("shopdb.test", debug=True)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertEqual(len(logger.handlers), 1)

        again = get_logger("shopdb.test", debug=False)
        self.assertIs(again, logger)
        self.assertEqual(len(again.handlers), 1)
        self.assertEqual(again.level, logging.INFO)
        self.assertEqual(again.handlers[0].level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
