"""
Tests for the batch-then-fallback push algorithm
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from ota_connectors.contracts import (
    BatchRejectedError,
    ConfigurationError,
    SigningError,
    TransportError,
)
from ota_connectors.utils.batching import (
    CANCELLED_ERROR_TYPE,
    chunked,
    push_with_fallback,
)


class RecordingPartner:
    """Fake partner that fails the items it is told to"""

    def __init__(self, bad_items=(), fail_batches=False, delay=0.0):
        self.bad_items = set(bad_items)
        self.fail_batches = fail_batches
        self.delay = delay
        self.batches = []
        self.singles = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def push_batch(self, chunk):
        self.batches.append(list(chunk))
        if self.fail_batches or self.bad_items.intersection(chunk):
            raise TransportError("batch rejected", status_code=400)

    async def push_one(self, item):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.singles.append(item)
            if item in self.bad_items:
                raise TransportError(f"item {item} rejected", status_code=422)
        finally:
            self.in_flight -= 1


class TestChunked:
    def test_splits_into_fixed_size_chunks(self):
        assert list(chunked(list(range(5)), 2)) == [[0, 1], [2, 3], [4]]

    def test_no_size_means_one_chunk(self):
        assert list(chunked([1, 2, 3], None)) == [[1, 2, 3]]
        assert list(chunked([1, 2, 3], 10)) == [[1, 2, 3]]

    def test_empty(self):
        assert list(chunked([], 3)) == []


class TestPushWithFallback:
    @pytest.mark.asyncio
    async def test_batches_succeed(self):
        partner = RecordingPartner()

        result = await push_with_fallback(
            list(range(7)), partner.push_one, partner.push_batch, batch_size=3
        )

        assert result.success is True
        assert result.synced == 7
        assert result.errors == []
        assert partner.batches == [[0, 1, 2], [3, 4, 5], [6]]
        assert partner.singles == []

    @pytest.mark.asyncio
    async def test_failed_batch_falls_back_to_single_items(self):
        partner = RecordingPartner(bad_items={4})
        logger = MagicMock()

        result = await push_with_fallback(
            list(range(6)),
            partner.push_one,
            partner.push_batch,
            batch_size=3,
            logger=logger,
        )

        assert result.success is False
        assert result.partial is True
        assert result.synced == 5
        assert result.batch_failures == 1
        assert [error.item for error in result.errors] == [4]
        assert result.errors[0].error_type == "TransportError"
        assert "item 4 rejected" in result.errors[0].cause
        assert sorted(partner.singles) == [3, 4, 5]
        logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_errors_follow_input_order(self):
        partner = RecordingPartner(bad_items={1, 4, 7}, fail_batches=True)

        result = await push_with_fallback(
            list(range(9)),
            partner.push_one,
            partner.push_batch,
            batch_size=9,
            max_concurrency=9,
        )

        assert [error.item for error in result.errors] == [1, 4, 7]
        assert result.synced == 6

    @pytest.mark.asyncio
    async def test_without_bulk_endpoint_items_go_one_by_one(self):
        partner = RecordingPartner(bad_items={2})

        result = await push_with_fallback(list(range(4)), partner.push_one)

        assert partner.batches == []
        assert sorted(partner.singles) == [0, 1, 2, 3]
        assert result.synced == 3
        assert result.batch_failures == 0

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        partner = RecordingPartner(delay=0.01)

        result = await push_with_fallback(
            list(range(10)), partner.push_one, max_concurrency=2
        )

        assert result.synced == 10
        assert partner.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_empty_snapshot(self):
        partner = RecordingPartner()

        result = await push_with_fallback([], partner.push_one, partner.push_batch)

        assert result.success is True
        assert result.synced == 0
        assert partner.batches == []

    @pytest.mark.asyncio
    async def test_configuration_errors_propagate(self):
        async def unsigned(_):
            raise SigningError("no secret")

        with pytest.raises(SigningError):
            await push_with_fallback([1, 2], unsigned, unsigned)

        with pytest.raises(ConfigurationError):
            await push_with_fallback([1, 2], unsigned)

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_propagate(self):
        async def broken(_):
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await push_with_fallback([1], broken)

    @pytest.mark.asyncio
    async def test_batch_rejection_counts_as_batch_failure(self):
        async def push_batch(_):
            raise BatchRejectedError("2 of 2 rejected")

        async def push_one(_):
            return None

        result = await push_with_fallback([1, 2], push_one, push_batch)

        assert result.success is True
        assert result.synced == 2
        assert result.batch_failures == 1


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_before_start(self):
        partner = RecordingPartner()
        event = asyncio.Event()
        event.set()

        result = await push_with_fallback(
            list(range(3)), partner.push_one, partner.push_batch, cancel_event=event
        )

        assert result.cancelled is True
        assert result.synced == 0
        assert [error.error_type for error in result.errors] == [CANCELLED_ERROR_TYPE] * 3
        assert partner.batches == []
        assert partner.singles == []

    @pytest.mark.asyncio
    async def test_cancel_between_items(self):
        event = asyncio.Event()
        pushed = []

        async def push_one(item):
            pushed.append(item)
            event.set()

        result = await push_with_fallback(
            list(range(4)), push_one, max_concurrency=1, cancel_event=event
        )

        assert pushed == [0]
        assert result.synced == 1
        assert result.cancelled is True
        assert [error.item for error in result.errors] == [1, 2, 3]
        assert result.outcome == "partial"

    @pytest.mark.asyncio
    async def test_deadline_stops_further_chunks(self):
        async def slow_batch(chunk):
            await asyncio.sleep(0.05)

        async def push_one(item):
            return None

        result = await push_with_fallback(
            list(range(3)), push_one, slow_batch, batch_size=1, deadline=0.01
        )

        assert result.synced == 1
        assert result.cancelled is True
        assert [error.item for error in result.errors] == [1, 2]
