"""Unit tests for the EmailTimeoutGuard."""

from datetime import timedelta

import pytest

from errors import EmailTimeoutShorterThanCurrentError
from infrastructure.storage.protocol import Partition
from schemas.models.timeout import EmailTimeout, EmailTimeoutReason
from services.email_timeouts import EmailTimeoutGuard, normalize_email


@pytest.fixture
def guard(storage, clock):
    return EmailTimeoutGuard(storage, clock=clock)


def _timeout(clock, seconds, reason=EmailTimeoutReason.PENDING_VERIFICATION):
    return EmailTimeout(reason=reason, expires=clock() + timedelta(seconds=seconds))


class TestPushEmailTimeout:
    async def test_longer_after_shorter_succeeds(self, guard, storage, clock):
        t1, t2 = _timeout(clock, 60), _timeout(clock, 600)
        await guard.push_email_timeout("a@b.com", t1)
        await guard.push_email_timeout("a@b.com", t2)
        stored = EmailTimeout.model_validate_json(
            await storage.get(Partition.TIMEOUTS, "a@b.com")
        )
        assert stored.expires == t2.expires

    async def test_shorter_after_longer_fails_and_keeps_longer(
        self, guard, storage, clock
    ):
        t1 = _timeout(clock, 60)
        t2 = _timeout(clock, 600, EmailTimeoutReason.BANNED)
        await guard.push_email_timeout("a@b.com", t2)
        with pytest.raises(EmailTimeoutShorterThanCurrentError):
            await guard.push_email_timeout("a@b.com", t1)
        stored = EmailTimeout.model_validate_json(
            await storage.get(Partition.TIMEOUTS, "a@b.com")
        )
        assert stored.expires == t2.expires
        assert stored.reason == EmailTimeoutReason.BANNED

    async def test_equal_expiry_is_allowed(self, guard, clock):
        t = _timeout(clock, 60)
        await guard.push_email_timeout("a@b.com", t)
        await guard.push_email_timeout(
            "a@b.com", EmailTimeout(reason=EmailTimeoutReason.BANNED, expires=t.expires)
        )

    async def test_addresses_are_normalised(self, guard, clock):
        await guard.push_email_timeout("  A@B.com ", _timeout(clock, 600))
        with pytest.raises(EmailTimeoutShorterThanCurrentError):
            await guard.push_email_timeout("a@b.com", _timeout(clock, 60))

    async def test_expired_record_does_not_block_shorter(self, guard, clock):
        await guard.push_email_timeout("a@b.com", _timeout(clock, 60))
        clock.advance(seconds=120)
        await guard.push_email_timeout("a@b.com", _timeout(clock, 10))

    async def test_lapsed_record_still_rejects_earlier_expiry(
        self, guard, storage, clock
    ):
        later, earlier = _timeout(clock, -10), _timeout(clock, -20)
        await guard.push_email_timeout("a@b.com", later)
        with pytest.raises(EmailTimeoutShorterThanCurrentError):
            await guard.push_email_timeout("a@b.com", earlier)
        stored = EmailTimeout.model_validate_json(
            await storage.get(Partition.TIMEOUTS, "a@b.com")
        )
        assert stored.expires == later.expires
        assert await guard.is_email_timed_out("a@b.com") is False

    async def test_record_outlives_its_expiry_in_storage(self, guard, storage, clock):
        await guard.push_email_timeout("a@b.com", _timeout(clock, 60))
        clock.advance(days=1)
        assert await storage.get(Partition.TIMEOUTS, "a@b.com") is not None
        assert await guard.is_email_timed_out("a@b.com") is False

    async def test_corrupted_record_is_overwritten(self, guard, storage, clock):
        await storage.put(Partition.TIMEOUTS, "a@b.com", "garbage")
        await guard.push_email_timeout("a@b.com", _timeout(clock, 60))
        assert await guard.is_email_timed_out("a@b.com") is True


class TestIsEmailTimedOut:
    async def test_no_record(self, guard):
        assert await guard.is_email_timed_out("a@b.com") is False

    async def test_active_then_lapsed(self, guard, clock):
        await guard.push_email_timeout("a@b.com", _timeout(clock, 30))
        assert await guard.is_email_timed_out("a@b.com") is True
        clock.advance(seconds=30)
        assert await guard.is_email_timed_out("a@b.com") is False

    async def test_record_past_expiry_but_not_deleted(self, storage, clock):
        guard = EmailTimeoutGuard(storage, clock=clock)
        stale = _timeout(clock, -5)
        # Written straight to storage without a TTL: still present, but lapsed
        await storage.put(Partition.TIMEOUTS, "a@b.com", stale.model_dump_json())
        assert await guard.is_email_timed_out("a@b.com") is False


class TestTimeoutEmail:
    async def test_seconds_duration(self, guard, clock):
        timeout = await guard.timeout_email(
            "a@b.com", 90, EmailTimeoutReason.TOO_MANY_ATTEMPTS
        )
        assert timeout.expires == clock() + timedelta(seconds=90)
        assert timeout.reason == EmailTimeoutReason.TOO_MANY_ATTEMPTS
        assert await guard.is_email_timed_out("a@b.com") is True

    async def test_timedelta_duration(self, guard, clock):
        timeout = await guard.timeout_email(
            "a@b.com", timedelta(hours=1), EmailTimeoutReason.BANNED
        )
        assert timeout.expires == clock() + timedelta(hours=1)

    async def test_cannot_shorten_ban(self, guard):
        await guard.timeout_email("a@b.com", timedelta(days=1), EmailTimeoutReason.BANNED)
        with pytest.raises(EmailTimeoutShorterThanCurrentError):
            await guard.timeout_email(
                "a@b.com", 60, EmailTimeoutReason.PENDING_VERIFICATION
            )


def test_normalize_email():
    assert normalize_email("  Someone@Example.COM ") == "someone@example.com"
