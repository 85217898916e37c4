"""
Tests for MailClient retrieval, mutations and configuration
"""
import asyncio

import pytest
from pydantic import SecretStr

from mailpipe import MailClient
from mailpipe.core.email.search import Filter
from mailpipe.utils.config import AccountConfig, AppConfig
from mailpipe.utils.errors import SessionUnavailableError, TransientNetworkError, ValidationError

from .test_helpers import FakeDialer, FakeIMAPClient, FakeMessage, MessageTestHelper


class TestGet:
    """Tests for MailClient.get"""

    @pytest.mark.asyncio
    async def test_unread_by_default(self, connected_client):
        emails = await connected_client.get()

        assert [e.uid for e in emails] == [1, 3, 4, 5]
        assert all(not e.is_read for e in emails)

    @pytest.mark.asyncio
    async def test_all_includes_read(self, connected_client):
        emails = await connected_client.get(all=True)

        assert [e.uid for e in emails] == [1, 2, 3, 4, 5]

    @pytest.mark.parametrize("limit", [1, 2, 3, 10])
    @pytest.mark.asyncio
    async def test_limit_bounds_result(self, connected_client, limit):
        emails = await connected_client.get(limit=limit, all=True)

        assert len(emails) <= limit

    @pytest.mark.asyncio
    async def test_sort_desc_with_limit(self, connected_client):
        emails = await connected_client.get(Filter(limit=3, sort_desc=True, all=True))

        uids = [e.uid for e in emails]
        assert uids == [5, 4, 3]
        assert all(a > b for a, b in zip(uids, uids[1:]))

    @pytest.mark.asyncio
    async def test_empty_mailbox(self, settings):
        imap = FakeIMAPClient({})
        client = MailClient(
            "test@example.com", "testpass", imap_server="imap.test.com",
            dialer=FakeDialer([imap]), settings=settings,
        )
        await client.connect()

        assert await client.get() == []
        assert not any(call[0] == "search" for call in imap.calls)

    @pytest.mark.asyncio
    async def test_no_matches(self, connected_client, imap):
        for message in imap.messages.values():
            message.flags.add("\\Seen")

        assert await connected_client.get() == []

    @pytest.mark.asyncio
    async def test_one_failed_fetch_of_five(self, connected_client, imap):
        imap.messages[3].body_missing = True

        emails = await connected_client.get(all=True)

        assert len(emails) == 4
        assert 3 not in [e.uid for e in emails]
        assert all(e.uid != 0 for e in emails)

    @pytest.mark.asyncio
    async def test_mark_read_skips_already_seen(self, connected_client, imap):
        await connected_client.get(all=True, mark_read=True)

        assert imap.stores == [("1,3:5", "+FLAGS.SILENT", "(\\Seen)")]

    @pytest.mark.asyncio
    async def test_mark_read_all_seen_issues_no_store(self, connected_client, imap):
        for message in imap.messages.values():
            message.flags.add("\\Seen")

        await connected_client.get(all=True, mark_read=True)

        assert imap.stores == []

    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        with pytest.raises(SessionUnavailableError):
            await client.get()

    @pytest.mark.asyncio
    async def test_invalid_option(self, connected_client):
        with pytest.raises(ValidationError):
            await connected_client.get(limit=-1)

    @pytest.mark.asyncio
    async def test_custom_mailbox(self, connected_client, imap):
        await connected_client.get(mailbox="Archive")

        assert ("select", "Archive") in imap.calls


class TestGetReconnect:
    """Tests for reconnect-and-retry around get"""

    @pytest.mark.asyncio
    async def test_broken_pipe_reconnects_once(self, mailbox, settings):
        first, second = FakeIMAPClient(mailbox), FakeIMAPClient(mailbox)
        first.fail("search", BrokenPipeError("broken pipe"))
        dialer = FakeDialer([first, second])
        client = MailClient(
            "test@example.com", "testpass", imap_server="imap.test.com",
            dialer=dialer, settings=settings,
        )
        await client.connect()

        emails = await client.get()

        assert [e.uid for e in emails] == [1, 3, 4, 5]
        assert len(dialer.imap_dials) == 2

    @pytest.mark.asyncio
    async def test_second_failure_returned_unmodified(self, mailbox, settings):
        first, second = FakeIMAPClient(mailbox), FakeIMAPClient(mailbox)
        first.fail("search", BrokenPipeError("broken pipe"))
        second_error = BrokenPipeError("broken pipe on retry")
        second.fail("search", second_error)
        dialer = FakeDialer([first, second])
        client = MailClient(
            "test@example.com", "testpass", imap_server="imap.test.com",
            dialer=dialer, settings=settings,
        )
        await client.connect()

        with pytest.raises(TransientNetworkError) as exc_info:
            await client.get()

        assert exc_info.value.__cause__ is second_error
        assert len(dialer.imap_dials) == 2

    @pytest.mark.asyncio
    async def test_transient_fetch_failure_retries_whole_get(self, mailbox, settings):
        first, second = FakeIMAPClient(mailbox), FakeIMAPClient(mailbox)
        first.fail("fetch", ConnectionResetError("connection reset"))
        dialer = FakeDialer([first, second])
        client = MailClient(
            "test@example.com", "testpass", imap_server="imap.test.com",
            dialer=dialer, settings=settings,
        )
        await client.connect()

        emails = await client.get()

        assert len(emails) == 4
        assert ("select", "INBOX") in second.calls

    @pytest.mark.asyncio
    async def test_concurrent_gets_share_one_reconnect(self, mailbox, settings):
        first, second, third = (FakeIMAPClient(mailbox) for _ in range(3))
        first.fail("search", BrokenPipeError("broken pipe"), BrokenPipeError("broken pipe"))
        dialer = FakeDialer([first, second, third])
        client = MailClient(
            "test@example.com", "testpass", imap_server="imap.test.com",
            dialer=dialer, settings=settings,
        )
        await client.connect()

        results = await asyncio.gather(client.get(), client.get())

        assert [[e.uid for e in emails] for emails in results] == [[1, 3, 4, 5]] * 2
        assert len(dialer.imap_dials) == 2
        assert not second.logged_out


class TestMutations:
    """Tests for the public mutation methods"""

    @pytest.mark.asyncio
    async def test_delete(self, connected_client, imap):
        await connected_client.delete(1, 2, 3, 7)

        assert imap.stores == [("1:3,7", "+FLAGS.SILENT", "(\\Deleted)")]

    @pytest.mark.asyncio
    async def test_mark_read_and_unread(self, connected_client, imap):
        await connected_client.mark_read(1)
        await connected_client.mark_unread(1)

        assert [s[1] for s in imap.stores] == ["+FLAGS.SILENT", "-FLAGS.SILENT"]

    @pytest.mark.asyncio
    async def test_no_uids_is_noop(self, connected_client, imap):
        await connected_client.delete()

        assert imap.stores == []

    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        with pytest.raises(SessionUnavailableError):
            await client.delete(1)


class TestSelectMailbox:
    """Tests for MailClient.select_mailbox"""

    @pytest.mark.asyncio
    async def test_select(self, connected_client):
        status = await connected_client.select_mailbox("INBOX")

        assert status.name == "INBOX"
        assert status.exists == 5
        assert status.uid_validity == 1700000000

    @pytest.mark.asyncio
    async def test_examine(self, connected_client, imap):
        status = await connected_client.select_mailbox("INBOX", read_only=True)

        assert status.read_only
        assert ("examine", "INBOX") in imap.calls


class TestFromConfig:
    """Tests for building a client from AppConfig"""

    @pytest.mark.asyncio
    async def test_from_config(self, imap):
        config = AppConfig(
            account=AccountConfig(
                email="test@example.com",
                password=SecretStr("testpass"),
                imap_server="imap.test.com:1993",
                smtp_server="smtp.test.com:465",
                smtp_connection_type="ssl",
                fetch_concurrency=4,
                reconnect_delay=0,
            )
        )
        dialer = FakeDialer([imap])

        client = MailClient.from_config(config, dialer=dialer)
        async with client:
            assert client.connection.connected

        assert dialer.imap_dials == [("imap.test.com", 1993)]
        assert client.fetch_service._pool.concurrency == 4
        assert imap.logged_out

    @pytest.mark.asyncio
    async def test_attachments_surface_on_email(self, settings):
        raw = MessageTestHelper.with_attachment(filename="notes.txt", data=b"notes")
        imap = FakeIMAPClient({1: FakeMessage(raw)})
        client = MailClient(
            "test@example.com", "testpass", imap_server="imap.test.com",
            dialer=FakeDialer([imap]), settings=settings,
        )

        async with client:
            emails = await client.get()

        assert emails[0].has_attachments
        assert emails[0].attachments[0].name == "notes.txt"
        assert emails[0].attachments[0].body == b"notes"
