"""Tests for media_conversion.worker (mocked orchestrator)."""

from __future__ import annotations

import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from media_conversion.media import MediaDescriptor, RequestContext
from media_conversion.schema import ExtractionStrategy


class TestWorker(unittest.TestCase):
    def setUp(self) -> None:
        with tempfile.NamedTemporaryFile(suffix=".txt", delete=False) as f:
            f.write(b"hello")
            self.tmp = f.name
        self.descriptor = MediaDescriptor.from_path(self.tmp, "text/plain")
        self.context = RequestContext(tenant_id="acme")

    def tearDown(self) -> None:
        if os.path.exists(self.tmp):
            os.remove(self.tmp)

    @patch("media_conversion.worker.store")
    @patch("media_conversion.worker.get_orchestrator")
    def test_successful_job(self, mock_get: MagicMock, mock_store: MagicMock) -> None:
        """Worker runs the conversion, then sets the job to completed."""
        from media_conversion.worker import _run

        fake_result = MagicMock()
        mock_get.return_value.convert.return_value = fake_result

        _run("job1", self.descriptor, self.context, ExtractionStrategy.TEXT_ONLY, temp_path=self.tmp)

        mock_get.return_value.convert.assert_called_once_with(
            self.descriptor, context=self.context, strategy=ExtractionStrategy.TEXT_ONLY
        )
        mock_store.set_processing.assert_called_once_with("job1")
        mock_store.set_completed.assert_called_once_with("job1", fake_result)
        mock_store.set_failed.assert_not_called()
        self.assertFalse(os.path.exists(self.tmp))

    @patch("media_conversion.worker.store")
    @patch("media_conversion.worker.get_orchestrator")
    def test_failed_job(self, mock_get: MagicMock, mock_store: MagicMock) -> None:
        """Worker sets the job to failed when the conversion crashes."""
        from media_conversion.worker import _run

        mock_get.return_value.convert.side_effect = RuntimeError("boom")

        _run("job2", self.descriptor, self.context, temp_path=self.tmp)

        mock_store.set_processing.assert_called_once_with("job2")
        mock_store.set_failed.assert_called_once()
        self.assertIn("boom", mock_store.set_failed.call_args[0][1])
        self.assertFalse(os.path.exists(self.tmp))

    @patch("media_conversion.worker._pool")
    def test_enqueue_submits(self, mock_pool: MagicMock) -> None:
        from media_conversion.worker import _run, enqueue

        enqueue("job3", self.descriptor, self.context)
        mock_pool.submit.assert_called_once_with(
            _run, "job3", self.descriptor, self.context, None, None
        )


if __name__ == "__main__":
    unittest.main()
