import sys
import unittest
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from aaabridge.core.normalize import normalize_log_row, normalize_message, normalize_topics


class NormalizeLogRowTests(unittest.TestCase):
    def test_folds_line_endings_and_blank_runs(self) -> None:
        self.assertEqual(
            "login failed for user alice from 10.0.0.5",
            normalize_message("  login failed\r\nfor user   alice\rfrom\t10.0.0.5 \n"),
        )

    def test_topics_from_string_or_list(self) -> None:
        self.assertEqual(("firewall", "info"), normalize_topics("firewall,info"))
        self.assertEqual(("ppp", "info"), normalize_topics(["ppp", " info ", ""]))
        self.assertEqual((), normalize_topics(None))

    def test_row_keeps_raw_reply(self) -> None:
        row = {".id": "*1A", "time": "jan/02 10:15:00", "topics": "radius,debug", "message": "sending Access-Request"}

        event = normalize_log_row(row)

        self.assertEqual("*1A", event.id)
        self.assertEqual("jan/02 10:15:00", event.timestamp)
        self.assertEqual(("radius", "debug"), event.topics)
        self.assertEqual("sending Access-Request", event.message)
        self.assertEqual(row, event.raw)
        self.assertFalse(event.classified)

    def test_missing_fields(self) -> None:
        event = normalize_log_row({})

        self.assertIsNone(event.id)
        self.assertIsNone(event.timestamp)
        self.assertEqual("", event.message)


if __name__ == "__main__":
    unittest.main()
