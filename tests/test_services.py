"""
Tests for experia_router_services – request bodies must match the firmware byte for byte.
"""

import unittest

from experia_router_services import login_body, mibs_body, netdev_stats_body, wan_status_body


class TestRequestBodies(unittest.TestCase):
    def test_login_body(self):
        self.assertEqual(
            login_body("admin", "s3cret"),
            '{"service":"sah.Device.Information","method":"createContext",'
            '"parameters":{"applicationName":"webui","username":"admin","password":"s3cret"}}',
        )

    def test_wan_status_body(self):
        self.assertEqual(wan_status_body(), '{"service":"NMC","method":"getWANStatus","parameters":{}}')

    def test_mibs_body_uppercases_candidate(self):
        self.assertEqual(mibs_body("eth0"), '{"service":"NeMo.Intf.ETH0","method":"getMIBs","parameters":{}}')

    def test_netdev_stats_body(self):
        self.assertEqual(
            netdev_stats_body("Eth3"),
            '{"service":"NeMo.Intf.ETH3","method":"getNetDevStats","parameters":{}}',
        )


if __name__ == "__main__":
    unittest.main()
