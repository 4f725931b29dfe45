"""
Tests for experia_router_utils: typed accessors, configuration parsing, RW lock.
"""

import threading
import unittest

from experia_router_client_exceptions import ConfigException
from experia_router_utils import (
    ReadWriteLock,
    as_bool,
    as_float,
    as_string,
    lookup,
    mask_token,
    parse_candidates,
    parse_listen_addr,
    parse_router_ip,
    parse_timeout,
)


class TestAccessors(unittest.TestCase):
    def test_as_bool(self):
        self.assertIs(as_bool(True), True)
        self.assertIs(as_bool("TRUE"), True)
        self.assertIs(as_bool("0"), False)
        self.assertIsNone(as_bool(1))
        self.assertIsNone(as_bool("yes"))
        self.assertIsNone(as_bool(None))

    def test_as_float_rejects_bool(self):
        self.assertIsNone(as_float(True))

    def test_as_float_coerces_numeric_strings(self):
        self.assertEqual(as_float("1500"), 1500.0)
        self.assertEqual(as_float(" 2.5 "), 2.5)
        self.assertEqual(as_float(7), 7.0)
        self.assertIsNone(as_float(""))
        self.assertIsNone(as_float("fast"))
        self.assertIsNone(as_float({"a": 1}))

    def test_as_float_out_of_range_integer(self):
        self.assertIsNone(as_float(int("9" * 400)))
        self.assertEqual(as_float(2 ** 53), float(2 ** 53))

    def test_as_string(self):
        self.assertEqual(as_string("up"), "up")
        self.assertIsNone(as_string(1))

    def test_lookup_case_insensitive(self):
        self.assertEqual(lookup({"MTU": 1500}, "mtu"), 1500)
        self.assertEqual(lookup({"mtu": 1, "MTU": 2}, "MTU"), 2)
        self.assertIsNone(lookup({"MTU": 1500}, "Alias"))
        self.assertIsNone(lookup(None, "MTU"))


class TestMaskToken(unittest.TestCase):
    def test_keeps_prefix_only(self):
        self.assertEqual(mask_token("abcdef123"), "abcd*****")

    def test_short_values_fully_masked(self):
        self.assertEqual(mask_token("abc"), "***")
        self.assertEqual(mask_token(""), "")


class TestConfigParsing(unittest.TestCase):
    def test_parse_candidates(self):
        self.assertEqual(parse_candidates(" eth0, ETH2 ,,wl0"), ["ETH0", "ETH2", "WL0"])
        self.assertEqual(parse_candidates(""), [])
        self.assertEqual(parse_candidates(None), [])

    def test_parse_timeout(self):
        self.assertEqual(parse_timeout("5s"), 5.0)
        self.assertEqual(parse_timeout("500ms"), 0.5)
        self.assertEqual(parse_timeout("1m30s"), 90.0)
        self.assertEqual(parse_timeout("2.5"), 2.5)
        self.assertEqual(parse_timeout(3), 3.0)

    def test_parse_timeout_invalid(self):
        for value in ("", "abc", "5x", "0s", "-1", 0):
            with self.assertRaises(ConfigException, msg=repr(value)):
                parse_timeout(value)

    def test_parse_router_ip(self):
        self.assertEqual(parse_router_ip(" 192.168.2.254 "), "192.168.2.254")
        with self.assertRaises(ConfigException):
            parse_router_ip("router.local")

    def test_parse_listen_addr(self):
        self.assertEqual(parse_listen_addr(":9100"), ("0.0.0.0", 9100))
        self.assertEqual(parse_listen_addr("127.0.0.1:9200"), ("127.0.0.1", 9200))
        self.assertEqual(parse_listen_addr("9100"), ("0.0.0.0", 9100))
        with self.assertRaises(ConfigException):
            parse_listen_addr(":http")
        with self.assertRaises(ConfigException):
            parse_listen_addr(":70000")


class TestReadWriteLock(unittest.TestCase):
    def test_readers_share(self):
        lock = ReadWriteLock()
        with lock.read_locked():
            entered = threading.Event()

            def reader():
                with lock.read_locked():
                    entered.set()

            t = threading.Thread(target=reader)
            t.start()
            self.assertTrue(entered.wait(timeout=2))
            t.join(timeout=2)

    def test_writer_waits_for_reader(self):
        lock = ReadWriteLock()
        acquired = threading.Event()

        def writer():
            with lock.write_locked():
                acquired.set()

        with lock.read_locked():
            t = threading.Thread(target=writer)
            t.start()
            self.assertFalse(acquired.wait(timeout=0.1))
        self.assertTrue(acquired.wait(timeout=2))
        t.join(timeout=2)


if __name__ == "__main__":
    unittest.main()
