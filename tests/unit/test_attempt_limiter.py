"""
Unit tests for the self-service attempt limiter.
"""
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from credential_service.core.exceptions import ExceptionMessageCode, ForbiddenError
from credential_service.services.auth.attempt_limiter import AttemptLimiter

NOW = datetime(2026, 3, 1, 12, 0, 0)


def counter(count, stamp=NOW):
    return SimpleNamespace(count=count, count_increase_last_update_date=stamp)


@pytest.fixture
def repository():
    """Repository double whose conditional updates behave like the SQL ones."""
    repo = AsyncMock()

    async def increment(db, row, limit, stamp):
        if row.count >= limit:
            return False
        row.count += 1
        row.count_increase_last_update_date = stamp
        return True

    async def reset(db, row, limit, stamp, stamped_before):
        if row.count < limit or row.count_increase_last_update_date >= stamped_before:
            return False
        row.count = 0
        row.count_increase_last_update_date = stamp
        return True

    repo.increment.side_effect = increment
    repo.reset.side_effect = reset
    return repo


@pytest.fixture
def limiter(repository):
    return AttemptLimiter(repository, max_attempts=3, cooldown_seconds=3600)


class TestAttemptLimiter:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_first_attempt_creates_counter(self, limiter, repository):
        repository.get_by_request_id.return_value = None
        repository.create.return_value = counter(1)

        result = await limiter.register_attempt(AsyncMock(), request_id=9, now=NOW)

        assert result.count == 1
        assert result.cooldown_active is False
        repository.create.assert_awaited_once()
        repository.increment.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_lost_counter_insert_counts_against_existing_row(self, limiter, repository):
        row = counter(1)
        repository.get_by_request_id.side_effect = [None, row]
        repository.create.return_value = None

        result = await limiter.register_attempt(AsyncMock(), request_id=9, now=NOW)

        assert result.count == 2
        assert row.count == 2

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_attempt_below_cap_increments(self, limiter, repository):
        row = counter(1)
        repository.get_by_request_id.return_value = row

        result = await limiter.register_attempt(AsyncMock(), request_id=9, now=NOW)

        assert result.count == 2
        assert row.count == 2
        repository.increment.assert_awaited_once()
        assert repository.increment.await_args.args[2] == 3

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_reaching_cap_reports_cooldown(self, limiter, repository):
        repository.get_by_request_id.return_value = counter(2)

        result = await limiter.register_attempt(AsyncMock(), request_id=9, now=NOW)

        assert result.count == 3
        assert result.cooldown_active is True

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_exhausted_counter_inside_window_is_refused(self, limiter, repository):
        row = counter(3, stamp=NOW - timedelta(minutes=59))
        repository.get_by_request_id.return_value = row

        with pytest.raises(ForbiddenError) as exc_info:
            await limiter.register_attempt(AsyncMock(), request_id=9, now=NOW)

        assert exc_info.value.code == ExceptionMessageCode.WAIT_FOR_ANOTHER_DAY
        assert row.count == 3
        repository.reset.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_window_boundary_is_still_refused(self, limiter, repository):
        repository.get_by_request_id.return_value = counter(3, stamp=NOW - timedelta(hours=1))

        with pytest.raises(ForbiddenError):
            await limiter.register_attempt(AsyncMock(), request_id=9, now=NOW)

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_exhausted_counter_resets_after_window(self, limiter, repository):
        row = counter(3, stamp=NOW - timedelta(hours=2))
        repository.get_by_request_id.return_value = row

        result = await limiter.register_attempt(AsyncMock(), request_id=9, now=NOW)

        assert result.count == 0
        assert result.cooldown_active is False
        assert row.count_increase_last_update_date == NOW
        assert repository.reset.await_args.kwargs["stamped_before"] == NOW - timedelta(hours=1)

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_concurrent_reset_is_counted_as_increment(self, limiter, repository):
        row = counter(3, stamp=NOW - timedelta(hours=2))
        repository.get_by_request_id.return_value = row

        async def reset_elsewhere(db, target, limit, stamp, stamped_before):
            target.count = 0
            target.count_increase_last_update_date = stamp
            return False

        repository.reset.side_effect = reset_elsewhere

        result = await limiter.register_attempt(AsyncMock(), request_id=9, now=NOW)

        assert result.count == 1
        assert repository.increment.await_count == 2

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_soft_deleted_counters_are_looked_up(self, limiter, repository):
        repository.get_by_request_id.return_value = counter(1)
        db = AsyncMock()

        await limiter.register_attempt(db, request_id=9, now=NOW)

        repository.get_by_request_id.assert_awaited_once_with(db, 9, include_deleted=True)
