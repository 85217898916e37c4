"""
Tests for the concurrent fetch pool
"""
import asyncio

import pytest
import pytest_asyncio

from mailpipe.core.email.imap.connection import IMAPConnection
from mailpipe.core.email.imap.fetch_pool import FetchPool
from mailpipe.core.email.imap.protocol import IMAPProtocol
from mailpipe.utils.errors import (
    PartialFetchFailure,
    SessionUnavailableError,
    TransientNetworkError,
)

from .test_helpers import FakeDialer, FakeIMAPClient


@pytest_asyncio.fixture
async def protocol(imap):
    connection = IMAPConnection(
        "test@example.com", "testpass", "imap.test.com", dialer=FakeDialer([imap])
    )
    await connection.connect()
    return IMAPProtocol(connection)


class TestFetchPool:
    """Tests for FetchPool.fetch_all"""

    @pytest.mark.asyncio
    async def test_fetches_all_in_selection_order(self, protocol):
        pool = FetchPool(protocol, concurrency=2)

        emails = await pool.fetch_all([5, 1, 3])

        assert [e.uid for e in emails] == [5, 1, 3]
        assert [e.subject for e in emails] == ["Email 5", "Email 1", "Email 3"]
        assert emails[0].text == "Body 5"

    @pytest.mark.asyncio
    async def test_flags_carried(self, protocol):
        emails = await FetchPool(protocol).fetch_all([2])

        assert emails[0].is_read

    @pytest.mark.asyncio
    async def test_one_failure_of_five(self, protocol, imap):
        imap.messages[4].body_missing = True

        emails = await FetchPool(protocol).fetch_all([1, 2, 3, 4, 5])

        assert len(emails) == 4
        assert [e.uid for e in emails] == [1, 2, 3, 5]
        assert all(e.uid != 0 for e in emails)

    @pytest.mark.asyncio
    async def test_missing_envelope_skipped(self, protocol):
        emails = await FetchPool(protocol).fetch_all([1, 42])

        assert [e.uid for e in emails] == [1]

    @pytest.mark.asyncio
    async def test_fetch_one_raises_partial_failure(self, protocol):
        with pytest.raises(PartialFetchFailure):
            await FetchPool(protocol).fetch_one(42)

    @pytest.mark.asyncio
    async def test_empty_input(self, protocol, imap):
        assert await FetchPool(protocol).fetch_all([]) == []
        assert not any(call[0] == "uid" for call in imap.calls)

    @pytest.mark.asyncio
    async def test_transient_failure_raised_after_join(self, protocol, imap):
        imap.fail("fetch", ConnectionResetError("Connection reset by peer"))

        with pytest.raises(TransientNetworkError):
            await FetchPool(protocol).fetch_all([1, 2, 3])

        fetched = {call[2] for call in imap.calls if call[:2] == ("uid", "fetch")}
        assert fetched == {"1", "2", "3"}

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, protocol, monkeypatch):
        pool = FetchPool(protocol, concurrency=2)
        in_flight = []
        peak = []
        real_fetch_one = pool.fetch_one

        async def tracked(uid):
            in_flight.append(uid)
            peak.append(len(in_flight))
            try:
                await asyncio.sleep(0)
                return await real_fetch_one(uid)
            finally:
                in_flight.remove(uid)

        monkeypatch.setattr(pool, "fetch_one", tracked)

        emails = await pool.fetch_all([1, 2, 3, 4, 5])

        assert len(emails) == 5
        assert max(peak) <= 2

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            FetchPool(object(), concurrency=0)

    @pytest.mark.asyncio
    async def test_missing_session_is_not_a_partial_result(self, protocol):
        await protocol.connection.close()

        with pytest.raises(SessionUnavailableError):
            await FetchPool(protocol).fetch_all([1, 2, 3])
