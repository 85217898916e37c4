"""
Shared test fixtures and configuration for pytest
"""
import pytest
import pytest_asyncio

from mailpipe.client import MailClient
from mailpipe.utils.config import AccountConfig

from .test_helpers import FakeDialer, FakeIMAPClient, FakeMessage, MessageTestHelper


@pytest.fixture
def settings():
    """Account settings with no reconnect pause"""
    return AccountConfig(reconnect_delay=0.0, fetch_concurrency=3)


@pytest.fixture
def mailbox():
    """Five messages; UID 2 already read"""
    return {
        uid: FakeMessage(
            MessageTestHelper.plain(subject=f"Email {uid}", body=f"Body {uid}"),
            flags={"\\Seen"} if uid == 2 else (),
        )
        for uid in range(1, 6)
    }


@pytest.fixture
def imap(mailbox):
    return FakeIMAPClient(mailbox)


@pytest.fixture
def dialer(imap):
    return FakeDialer([imap])


@pytest.fixture
def client(dialer, settings):
    return MailClient(
        "test@example.com",
        "testpass",
        imap_server="imap.test.com",
        smtp_server="smtp.test.com:587",
        dialer=dialer,
        settings=settings,
    )


@pytest_asyncio.fixture
async def connected_client(client):
    await client.connect()
    yield client
    await client.close()
