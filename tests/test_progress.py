"""Tests for mpupload.uploaders.progress."""

from __future__ import annotations

from pathlib import Path

import pytest

from mpupload.models.progress import PartProgress, TransferProgress, UploadStatus
from mpupload.models.upload import UploadFile
from mpupload.uploaders.progress import ProgressAggregator


def _file(name: str, size: int) -> UploadFile:
    return UploadFile(path=Path(f"/data/{name}"), name=name, size=size)


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def aggregator(events: list) -> ProgressAggregator:
    return ProgressAggregator(events.append)


class TestByteTracking:
    """Byte-level progress of direct transfers."""

    def test_reports_cumulative_bytes(self, aggregator, events):
        tracker = aggregator.track(_file("a.bin", 100))
        tracker.update(40)
        tracker.update(100)

        assert [e.current for e in events] == [40, 100]
        assert all(isinstance(e, TransferProgress) for e in events)
        assert events[-1].aggregate_total == 100
        assert events[0].bytes_percent == 40.0

    def test_clamps_to_declared_size(self, aggregator, events):
        tracker = aggregator.track(_file("a.bin", 100))
        tracker.update(250)

        assert events[-1].current == 100
        assert aggregator.uploaded_bytes == 100

    def test_ignores_non_increasing_updates(self, aggregator, events):
        tracker = aggregator.track(_file("a.bin", 100))
        tracker.update(60)
        tracker.update(30)
        tracker.update(60)

        assert len(events) == 1

    def test_sequential_files_never_go_backwards(self, aggregator, events):
        first = aggregator.track(_file("a.bin", 100))
        first.update(100)
        first.finish()
        second = aggregator.track(_file("b.bin", 50))
        second.update(20)
        second.update(50)
        second.finish()

        sent = [e.aggregate_sent for e in events]
        assert sent == sorted(sent)
        assert aggregator.uploaded_bytes == 150
        assert aggregator.total_bytes == 150
        assert events[-1].phase == UploadStatus.UPLOADED

    def test_finish_counts_declared_size(self, aggregator):
        tracker = aggregator.track(_file("a.bin", 80))
        tracker.update(10)
        tracker.finish()

        assert aggregator.uploaded_bytes == 80

    def test_discard_withdraws_bytes(self, aggregator, events):
        tracker = aggregator.track(_file("a.bin", 100))
        tracker.update(70)
        tracker.discard()

        assert aggregator.uploaded_bytes == 0
        assert aggregator.total_bytes == 0
        assert events[-1].phase == UploadStatus.FAILED
        assert events[-1].success is False

    def test_closed_tracker_ignores_updates(self, aggregator, events):
        tracker = aggregator.track(_file("a.bin", 100))
        tracker.finish()
        count = len(events)
        tracker.update(50)
        tracker.discard()

        assert len(events) == count
        assert aggregator.uploaded_bytes == 100


class TestPartProgress:
    """Part-level progress of multipart sessions."""

    def test_part_confirmed_signal(self, aggregator, events):
        aggregator.part_confirmed(_file("big.bin", 30), 2, 1, 3)

        assert len(events) == 1
        event = events[0]
        assert isinstance(event, PartProgress)
        assert event.part_index == 2
        assert (event.current, event.total) == (1, 3)
        assert event.percent == pytest.approx(100 / 3)

    def test_parts_do_not_touch_byte_totals(self, aggregator):
        aggregator.part_confirmed(_file("big.bin", 30), 0, 1, 3)

        assert aggregator.uploaded_bytes == 0
        assert aggregator.total_bytes == 0


class TestCallback:
    """Callback handling."""

    def test_no_callback_is_fine(self):
        aggregator = ProgressAggregator()
        tracker = aggregator.track(_file("a.bin", 10))
        tracker.update(10)
        tracker.finish()

        assert aggregator.uploaded_bytes == 10

    def test_callback_errors_propagate(self):
        def broken(progress):
            raise RuntimeError("display gone")

        tracker = ProgressAggregator(broken).track(_file("a.bin", 10))

        with pytest.raises(RuntimeError):
            tracker.update(5)
