import json
import tempfile
import unittest
from pathlib import Path

from codeplanner.audit import EVENTS, PIPELINE_COMPLETE, PIPELINE_START, RATE_LIMIT_REJECTED, AuditLog


class AuditLogTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.audit = AuditLog(Path(self._tmp.name) / "nested" / "audit.jsonl")

    def tearDown(self):
        self._tmp.cleanup()

    def test_records_are_jsonl_with_utc_timestamps(self):
        record = self.audit.log(PIPELINE_START, {"repo": "acme/shop", "providers": ["openai"]})
        self.assertTrue(record["timestamp"].endswith("+00:00"))
        line = self.audit.path.read_text(encoding="utf-8").splitlines()[0]
        self.assertEqual(json.loads(line), record)

    def test_unknown_event_rejected(self):
        with self.assertRaises(ValueError):
            self.audit.log("pipeline.started")
        self.assertFalse(self.audit.path.exists())

    def test_read_filters_then_limits(self):
        self.audit.log(PIPELINE_START, {"n": 1})
        self.audit.log(RATE_LIMIT_REJECTED, {"identity": "x", "retry_after": 3})
        self.audit.log(PIPELINE_START, {"n": 2})
        self.audit.log(PIPELINE_COMPLETE, {"warning": None})
        self.assertEqual([r["event"] for r in self.audit.read(limit=2)], [PIPELINE_START, PIPELINE_COMPLETE])
        starts = self.audit.read(limit=1, event=PIPELINE_START)
        self.assertEqual([r["data"]["n"] for r in starts], [2])
        self.assertEqual(self.audit.read(limit=0), [])

    def test_missing_file_reads_empty(self):
        self.assertEqual(self.audit.read(), [])

    def test_event_names(self):
        self.assertIn("agents.complete", EVENTS)
        self.assertEqual(len(set(EVENTS)), 7)


if __name__ == "__main__":
    unittest.main()
