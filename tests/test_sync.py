import logging
import sys
import unittest
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from fake_router import FakeRouter

from aaabridge.core.models import Package, Subscriber
from aaabridge.mikrotik.client import DeviceClient
from aaabridge.mikrotik.sync import AccountSynchronizer, account_comment, generate_secret

FIBER = Package(name="Fiber 100", download_mbps=100, upload_mbps=50, validity_days=30)
BASIC = Package(name="Basic 10", download_mbps=10, upload_mbps=5)


def _subscriber(subscriber_id: str = "1001", **overrides) -> Subscriber:
    values = dict(
        id=subscriber_id,
        name=f"Customer {subscriber_id}",
        email=f"c{subscriber_id}@example.net",
        service_package="Fiber 100",
        login=f"user{subscriber_id}",
        secret="s3cret",
    )
    values.update(overrides)
    return Subscriber(**values)


class SynchronizerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.router = FakeRouter()
        client = DeviceClient(
            host="192.0.2.10", username="api", password="pw", device_name="nas1", pool_factory=self.router.pool_factory
        )
        self.sync = AccountSynchronizer(client, logging.getLogger("aaabridge.test.sync"))


class SyncOneTests(SynchronizerTestCase):
    def test_first_sync_creates_profile_and_account(self) -> None:
        outcome = self.sync.sync_one(_subscriber(), FIBER, "pppoe")

        self.assertTrue(outcome.success)
        self.assertEqual(1, outcome.created)
        self.assertEqual(0, outcome.updated)
        self.assertEqual("Subscriber Customer 1001 synced successfully", outcome.message)

        profile = self.router.tables["/ppp/profile"][0]
        self.assertEqual("Fiber_100_pppoe", profile["name"])
        self.assertEqual("51200k/102400k", profile["rate-limit"])
        self.assertEqual("2592000", profile["session-timeout"])

        account = self.router.tables["/ppp/secret"][0]
        self.assertEqual("user1001", account["name"])
        self.assertEqual("Fiber_100_pppoe", account["profile"])
        self.assertEqual("no", account["disabled"])
        self.assertEqual("Customer: Customer 1001 (ID: 1001)", account["comment"])

    def test_second_sync_is_an_update(self) -> None:
        subscriber = _subscriber()
        self.sync.sync_one(subscriber, FIBER, "pppoe")

        subscriber.status = "Suspended"
        outcome = self.sync.sync_one(subscriber, BASIC, "pppoe")

        self.assertTrue(outcome.success)
        self.assertEqual(0, outcome.created)
        self.assertEqual(1, outcome.updated)
        self.assertEqual("Subscriber Customer 1001 updated successfully", outcome.message)
        self.assertEqual(1, len(self.router.tables["/ppp/secret"]))
        account = self.router.tables["/ppp/secret"][0]
        self.assertEqual("Basic_10_pppoe", account["profile"])
        self.assertEqual("yes", account["disabled"])

    def test_existing_profile_is_reused(self) -> None:
        self.router.seed("/ppp/profile", name="Fiber_100_pppoe")

        outcome = self.sync.sync_one(_subscriber(), FIBER, "pppoe")

        self.assertTrue(outcome.success)
        self.assertEqual(1, len(self.router.tables["/ppp/profile"]))

    def test_profile_failure_stops_before_account(self) -> None:
        self.router.fail("/ppp/profile", "add", "failure: invalid value for argument rate-limit")

        outcome = self.sync.sync_one(_subscriber(), FIBER, "pppoe")

        self.assertFalse(outcome.success)
        self.assertTrue(outcome.message.startswith("Failed to create/verify profile:"))
        self.assertEqual([], self.router.calls_for("/ppp/secret"))

    def test_account_failure_is_reported(self) -> None:
        self.router.fail("/ppp/secret", "add", "failure: invalid profile")

        outcome = self.sync.sync_one(_subscriber(), FIBER, "pppoe")

        self.assertFalse(outcome.success)
        self.assertTrue(outcome.message.startswith("Failed to create user:"))
        self.assertEqual(1, len(outcome.errors))

    def test_ensure_profile_result_serializes_profile(self) -> None:
        payload = self.sync.ensure_profile(FIBER, "pppoe").to_dict()

        self.assertTrue(payload["success"])
        self.assertEqual("Fiber_100_pppoe", payload["data"]["name"])
        self.assertEqual("51200k/102400k", payload["data"]["rate_limit"])
        self.assertEqual(2592000, payload["data"]["session_timeout"])

    def test_email_is_used_when_login_is_missing(self) -> None:
        self.sync.sync_one(_subscriber(login=None), FIBER, "pppoe")

        self.assertEqual("c1001@example.net", self.router.tables["/ppp/secret"][0]["name"])

    def test_generated_secret_when_subscriber_has_none(self) -> None:
        self.sync.sync_one(_subscriber(secret=None), FIBER, "pppoe")

        password = self.router.tables["/ppp/secret"][0]["password"]
        self.assertEqual(8, len(password))
        self.assertTrue(password.isalnum())

    def test_hotspot_account_binds_mac(self) -> None:
        subscriber = _subscriber(mac_address="AA:BB:CC:DD:EE:FF")

        outcome = self.sync.sync_one(subscriber, FIBER, "hotspot")

        self.assertTrue(outcome.success)
        self.assertEqual("Fiber_100_hotspot", self.router.tables["/ip/hotspot/user/profile"][0]["name"])
        self.assertEqual("AA:BB:CC:DD:EE:FF", self.router.tables["/ip/hotspot/user"][0]["mac-address"])


class SyncManyTests(SynchronizerTestCase):
    def test_missing_package_does_not_abort_batch(self) -> None:
        subscribers = [
            _subscriber("1"),
            _subscriber("2", service_package="Platinum"),
            _subscriber("3", service_package="Basic 10"),
        ]

        batch = self.sync.sync_many(subscribers, [FIBER, BASIC], "pppoe")

        self.assertEqual(3, batch.total)
        self.assertEqual(2, batch.created)
        self.assertEqual(0, batch.updated)
        self.assertEqual(1, batch.errors)
        self.assertFalse(batch.success)
        self.assertEqual("Bulk sync completed: 2 created, 0 updated, 1 errors", batch.message)
        self.assertEqual(["Customer 2: Package Platinum not found"], batch.error_messages)
        self.assertEqual(["user1", "user3"], [row["name"] for row in self.router.tables["/ppp/secret"]])

    def test_device_failure_mid_batch_leaves_others_synced(self) -> None:
        self.router.fail_name("/ppp/secret", "add", "user2", "failure: invalid value for argument caller-id")
        subscribers = [_subscriber("1"), _subscriber("2"), _subscriber("3")]

        batch = self.sync.sync_many(subscribers, [FIBER], "pppoe")

        self.assertEqual(3, batch.total)
        self.assertEqual(2, batch.created)
        self.assertEqual(1, batch.errors)
        self.assertEqual([True, False, True], [item.success for item in batch.results])
        self.assertEqual(1, len(batch.error_messages))
        self.assertTrue(batch.error_messages[0].startswith("Customer 2: Failed to create user:"))
        self.assertEqual(["user1", "user3"], [row["name"] for row in self.router.tables["/ppp/secret"]])
        self.assertEqual([], self.router.calls_for("/ppp/secret", "set"))

    def test_rerun_counts_updates(self) -> None:
        subscribers = [_subscriber("1"), _subscriber("2")]
        self.sync.sync_many(subscribers, [FIBER], "pppoe")

        batch = self.sync.sync_many(subscribers, [FIBER], "pppoe")

        self.assertTrue(batch.success)
        self.assertEqual(0, batch.created)
        self.assertEqual(2, batch.updated)

    def test_first_package_with_a_name_wins(self) -> None:
        shadow = Package(name="Fiber 100", download_mbps=1, upload_mbps=1)

        self.sync.sync_many([_subscriber()], [FIBER, shadow], "pppoe")

        self.assertEqual("51200k/102400k", self.router.tables["/ppp/profile"][0]["rate-limit"])

    def test_summary_dict_shape(self) -> None:
        payload = self.sync.sync_many([_subscriber()], [FIBER], "pppoe").to_dict()

        self.assertEqual((1, 1, 0, 0), (payload["total"], payload["created"], payload["updated"], payload["errors"]))
        self.assertEqual("pppoe", payload["service_type"])
        self.assertEqual("Customer 1001", payload["results"][0]["subscriber"])
        self.assertEqual([], payload["error_messages"])

    def test_summary_dict_lists_error_messages(self) -> None:
        payload = self.sync.sync_many([_subscriber("9", service_package="Gold")], [FIBER], "pppoe").to_dict()

        self.assertEqual(1, payload["errors"])
        self.assertEqual(["Customer 9: Package Gold not found"], payload["error_messages"])


class AccountAdministrationTests(SynchronizerTestCase):
    def test_remove_account_by_name(self) -> None:
        self.router.seed("/ppp/secret", name="alice")
        self.router.seed("/ppp/secret", name="bob")

        result = self.sync.remove_account("alice", "pppoe")

        self.assertTrue(result.success)
        self.assertEqual(["bob"], [row["name"] for row in self.router.tables["/ppp/secret"]])

    def test_remove_unknown_account_fails(self) -> None:
        result = self.sync.remove_account("ghost", "pppoe")

        self.assertFalse(result.success)
        self.assertEqual("not_found", result.error_kind)

    def test_list_accounts_and_profiles(self) -> None:
        self.router.seed("/ip/hotspot/user", name="guest")
        self.router.seed("/ip/hotspot/user/profile", name="Basic_10_hotspot")

        accounts = self.sync.list_accounts("hotspot")
        profiles = self.sync.list_profiles("hotspot")

        self.assertEqual("Retrieved 1 hotspot accounts", accounts.message)
        self.assertEqual("Basic_10_hotspot", profiles.data[0]["name"])


class HelperTests(unittest.TestCase):
    def test_generate_secret_alphabet_and_length(self) -> None:
        secret = generate_secret()

        self.assertEqual(8, len(secret))
        self.assertTrue(secret.isalnum())
        self.assertEqual(12, len(generate_secret(12)))

    def test_account_comment(self) -> None:
        self.assertEqual("Customer: Alice (ID: 7)", account_comment(_subscriber("7", name="Alice")))


if __name__ == "__main__":
    unittest.main()
