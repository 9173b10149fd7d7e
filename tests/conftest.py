from __future__ import annotations

import pytest
import pytest_asyncio

from acs_email.auth import SharedKeyCredential
from acs_email.client import EmailClient, EmailClientConfig, PollPolicy

from tests.factories import ACCESS_KEY, ENDPOINT


@pytest.fixture
def fast_poll_policy() -> PollPolicy:
    """Poll without waiting so scripted sequences finish immediately."""

    return PollPolicy(interval=0.0, max_attempts=20, max_elapsed=30.0)


@pytest_asyncio.fixture
async def email_client(fast_poll_policy: PollPolicy):
    """Shared-key client whose HTTP calls are served by respx."""

    client = EmailClient(
        ENDPOINT,
        SharedKeyCredential(ACCESS_KEY),
        EmailClientConfig(poll_policy=fast_poll_policy, enable_telemetry=False),
    )
    try:
        yield client
    finally:
        await client.close()
