import sys
import unittest
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from fake_router import FakeRouter

from aaabridge.mikrotik.client import DeviceClient
from aaabridge.mikrotik.logs import LogPredicate, LogReader, check_count


class LogPredicateTests(unittest.TestCase):
    def test_empty_predicate(self) -> None:
        self.assertEqual("", LogPredicate().build())

    def test_message_clauses_are_anded(self) -> None:
        predicate = LogPredicate().contains("10.0.0.5").contains("tcp").contains(None)

        self.assertEqual('message~"10.0.0.5" && message~"tcp"', predicate.build())

    def test_time_only(self) -> None:
        predicate = LogPredicate().since("2026-10-01 00:00:00").until("2026-10-02 00:00:00")

        self.assertEqual('time>="2026-10-01 00:00:00" && time<="2026-10-02 00:00:00"', predicate.build())

    def test_groups_are_parenthesized_when_combined(self) -> None:
        predicate = LogPredicate().contains("alice").since("10:00:00")

        self.assertEqual('(message~"alice") && (time>="10:00:00")', predicate.build())

    def test_any_contains_builds_or_group(self) -> None:
        predicate = LogPredicate().contains("alice").any_contains("reject", "deny")

        self.assertEqual('message~"alice" && (message~"reject" || message~"deny")', predicate.build())

    def test_quotes_are_escaped(self) -> None:
        self.assertEqual('message~"say \\"hi\\""', LogPredicate().contains('say "hi"').build())


class CheckCountTests(unittest.TestCase):
    def test_bounds(self) -> None:
        self.assertIsNone(check_count(1))
        self.assertIsNone(check_count(1000))
        self.assertEqual("Count cannot exceed 1000 logs", check_count(1001))
        self.assertEqual("Count must be at least 1", check_count(0))
        self.assertEqual("Count must be an integer", check_count("10"))


class LogReaderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.router = FakeRouter()
        client = DeviceClient(
            host="192.0.2.10", username="api", password="pw", device_name="nas1", pool_factory=self.router.pool_factory
        )
        self.reader = LogReader(client)

    def test_over_limit_is_rejected_before_connecting(self) -> None:
        result = self.reader.fetch_logs(("firewall",), count=1001)

        self.assertFalse(result.success)
        self.assertEqual("Count cannot exceed 1000 logs", result.message)
        self.assertEqual("validation", result.error_kind)
        self.assertEqual([], self.router.pools)

    def test_nat_logs_are_filtered_and_classified(self) -> None:
        self.router.seed(
            "/log",
            time="10:15:00",
            topics="firewall,info",
            message="dstnat: in:ether1 out:(unknown 0), src-address=10.0.0.5 dst-address=93.1.1.1 protocol=tcp",
        )

        result = self.reader.fetch_nat_logs(count=50, source_ip="10.0.0.5", protocol="tcp", start="10:00:00")

        self.assertTrue(result.success)
        self.assertEqual("Retrieved 1 NAT log entries", result.message)
        path, verb, arguments, _ = self.router.calls_for("/log")[0]
        self.assertEqual("print", verb)
        self.assertEqual("50", arguments["count"])
        self.assertEqual("firewall", arguments["topics"])
        self.assertEqual(
            '(message~"10.0.0.5" && message~"tcp") && (time>="10:00:00")',
            arguments["where"],
        )

        event = result.data[0]
        self.assertEqual(("firewall", "info"), event.topics)
        self.assertEqual("10:15:00", event.timestamp)
        self.assertEqual("10.0.0.5", event.nat.source_ip)
        self.assertEqual("destination", event.nat.nat_type)
        self.assertTrue(event.classified)
        self.assertEqual("93.1.1.1", event.to_dict()["destination_ip"])

    def test_access_logs_use_auth_topics_and_status_group(self) -> None:
        self.router.seed("/log", time="11:00:00", topics="ppp,info", message="user=alice client=10.0.0.5 login accept")

        result = self.reader.fetch_access_logs(username="alice", auth_status="accept")

        self.assertTrue(result.success)
        arguments = self.router.calls_for("/log")[0][2]
        self.assertEqual("radius,ppp,hotspot", arguments["topics"])
        self.assertEqual("100", arguments["count"])
        self.assertEqual(
            'message~"alice" && (message~"accept" || message~"login" || message~"authenticated")',
            arguments["where"],
        )
        event = result.data[0]
        self.assertEqual("alice", event.aaa.username)
        self.assertEqual("accept", event.aaa.auth_result)

    def test_invalid_auth_status_is_rejected(self) -> None:
        result = self.reader.fetch_access_logs(auth_status="maybe")

        self.assertFalse(result.success)
        self.assertEqual("validation", result.error_kind)
        self.assertEqual([], self.router.pools)

    def test_unclassified_lines_are_still_returned(self) -> None:
        self.router.seed("/log", time="12:00:00", topics="firewall,info", message="filter rule added by admin")

        result = self.reader.fetch_nat_logs()

        self.assertEqual(1, len(result.data))
        self.assertFalse(result.data[0].classified)

    def test_unknown_kind_is_rejected(self) -> None:
        result = self.reader.fetch_logs(kind="dhcp")

        self.assertFalse(result.success)
        self.assertEqual([], self.router.pools)

    def test_raw_where_string_is_passed_through(self) -> None:
        self.router.seed("/log", time="12:00:00", topics="system,info", message="router rebooted")

        result = self.reader.fetch_logs(["system"], 'message~"reboot"', 10)

        self.assertTrue(result.success)
        self.assertIsNone(result.data[0].nat)
        self.assertEqual('message~"reboot"', self.router.calls_for("/log")[0][2]["where"])


if __name__ == "__main__":
    unittest.main()
