import sys
import unittest
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from fake_router import FakeRouter

from aaabridge.mikrotik.client import DeviceClient
from aaabridge.mikrotik.sessions import SessionReader, session_from_row


class SessionReaderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.router = FakeRouter()
        client = DeviceClient(
            host="192.0.2.10", username="api", password="pw", device_name="nas1", pool_factory=self.router.pool_factory
        )
        self.reader = SessionReader(client)

    def test_lists_pppoe_sessions(self) -> None:
        self.router.seed(
            "/ppp/active", name="alice", address="10.0.0.5", uptime="1h2m", **{"caller-id": "AA:BB:CC:DD:EE:01"}
        )

        result = self.reader.list_sessions("pppoe")

        self.assertTrue(result.success)
        session = result.data[0]
        self.assertEqual("alice", session.user)
        self.assertEqual("10.0.0.5", session.address)
        self.assertEqual("AA:BB:CC:DD:EE:01", session.caller_id)
        self.assertEqual("pppoe", session.service_type)
        self.assertEqual("alice", result.to_dict()["data"][0]["user"])

    def test_lists_hotspot_sessions(self) -> None:
        self.router.seed("/ip/hotspot/active", user="guest", address="10.5.0.2", **{"mac-address": "AA:BB:CC:DD:EE:02"})

        session = self.reader.list_sessions("hotspot").data[0]

        self.assertEqual("guest", session.user)
        self.assertEqual("AA:BB:CC:DD:EE:02", session.caller_id)

    def test_disconnect_removes_only_the_target(self) -> None:
        first = self.router.seed("/ppp/active", name="alice")
        self.router.seed("/ppp/active", name="bob")

        result = self.reader.disconnect(first[".id"], "pppoe")

        self.assertTrue(result.success)
        self.assertEqual(["bob"], [row["name"] for row in self.router.tables["/ppp/active"]])

    def test_disconnect_unknown_session_is_a_failure(self) -> None:
        self.router.seed("/ppp/active", name="bob")

        result = self.reader.disconnect("*FF", "pppoe")

        self.assertFalse(result.success)
        self.assertEqual("Session *FF not found", result.message)
        self.assertEqual("not_found", result.error_kind)
        self.assertEqual(1, len(self.router.tables["/ppp/active"]))

    def test_connection_check_returns_system_resource(self) -> None:
        self.router.seed("/system/resource", version="7.15", uptime="3d")

        result = self.reader.test_connection()

        self.assertTrue(result.success)
        self.assertEqual("Connection to device successful", result.message)
        self.assertEqual("7.15", result.data["version"])

    def test_connection_check_reports_bad_credentials(self) -> None:
        self.router.reject_login = True

        result = self.reader.test_connection()

        self.assertFalse(result.success)
        self.assertTrue(result.message.startswith("Connection failed:"))
        self.assertEqual("auth", result.error_kind)


class SessionFromRowTests(unittest.TestCase):
    def test_missing_optional_fields_are_none(self) -> None:
        session = session_from_row({"id": "*1", "name": "alice"}, "pppoe")

        self.assertEqual("*1", session.id)
        self.assertIsNone(session.address)
        self.assertIsNone(session.uptime)
        self.assertIsNone(session.caller_id)


if __name__ == "__main__":
    unittest.main()
