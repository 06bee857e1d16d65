"""
Unit tests for account verification, password recovery and password reset.

Each flow is driven through AuthenticationService against the test database;
mailed links are read back from the mail double.
"""
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import pytest

from credential_service.core.config import settings
from credential_service.core.exceptions import (
    ExceptionMessageCode,
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from credential_service.core.security import SecurityService
from credential_service.models.refresh_token import Platform
from credential_service.services.auth import ConfirmOutcome, TokenKind
from tests.factories import DEFAULT_PASSWORD, create_user

NEW_PASSWORD = "AnotherPassword456!"


def token_from_link(link: str) -> str:
    return parse_qs(urlsplit(link).query)["token"][0]


def mailed_link(mock) -> str:
    return mock.await_args.args[1]


async def age_counter(db, flow_service, user, days=2):
    """Move the counter's last increment into the past."""
    request = await flow_service.flow.requests.get_by_user_id(db, user.id, include_deleted=True)
    counter = await flow_service.flow.attempts.get_by_request_id(db, request.id, include_deleted=True)
    counter.count_increase_last_update_date -= timedelta(days=days)
    await db.commit()


class TestAccountVerification:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_send_mails_confirm_link(self, db_session, auth_service, unverified_user, mail_service):
        result = await auth_service.account_verify_send(db_session, unverified_user.email)

        assert result.count == 1
        assert result.cooldown_active is False
        email, link = mail_service.send_account_verify.await_args.args
        assert email == unverified_user.email
        assert link.startswith("http://test/authentication/account-verify/confirm?token=")

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_confirm_marks_account_verified(self, db_session, auth_service, unverified_user, mail_service):
        await auth_service.account_verify_send(db_session, unverified_user.email)
        token = token_from_link(mailed_link(mail_service.send_account_verify))

        outcome = await auth_service.account_verify_confirm(db_session, token)

        assert outcome is ConfirmOutcome.CONFIRMED
        assert unverified_user.is_account_verified is True

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_verified_user_cannot_request(self, db_session, auth_service, verified_user):
        with pytest.raises(ForbiddenError) as exc_info:
            await auth_service.account_verify_send(db_session, verified_user.email)

        assert exc_info.value.code == ExceptionMessageCode.USER_ALREADY_VERIFIED

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_unknown_email(self, db_session, auth_service):
        with pytest.raises(NotFoundError):
            await auth_service.account_verify_send(db_session, "nobody@example.com")

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_resend_invalidates_previous_token(self, db_session, auth_service, unverified_user, mail_service):
        await auth_service.account_verify_send(db_session, unverified_user.email)
        first = token_from_link(mailed_link(mail_service.send_account_verify))
        result = await auth_service.account_verify_send(db_session, unverified_user.email)
        second = token_from_link(mailed_link(mail_service.send_account_verify))

        assert result.count == 2
        with pytest.raises(ForbiddenError) as exc_info:
            await auth_service.account_verify_confirm(db_session, first)
        assert exc_info.value.code == ExceptionMessageCode.ACCOUNT_VERIFICATION_REQUEST_INVALID

        assert await auth_service.account_verify_confirm(db_session, second) is ConfirmOutcome.CONFIRMED

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_duplicate_confirm_inside_window(self, db_session, auth_service, unverified_user, mail_service):
        await auth_service.account_verify_send(db_session, unverified_user.email)
        token = token_from_link(mailed_link(mail_service.send_account_verify))
        await auth_service.account_verify_confirm(db_session, token)

        outcome = await auth_service.account_verify_confirm(db_session, token)

        assert outcome is ConfirmOutcome.ALREADY_CONFIRMED
        mail_service.send_reuse_alert.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_replay_after_window_is_escalated(self, db_session, auth_service, unverified_user, mail_service):
        await auth_service.account_verify_send(db_session, unverified_user.email)
        token = token_from_link(mailed_link(mail_service.send_account_verify))
        await auth_service.account_verify_confirm(db_session, token)
        await age_counter(db_session, auth_service.account_verify, unverified_user)

        with pytest.raises(ForbiddenError) as exc_info:
            await auth_service.account_verify_confirm(db_session, token)

        assert exc_info.value.code == ExceptionMessageCode.ACCOUNT_VERIFICATION_TOKEN_REUSE
        mail_service.send_reuse_alert.assert_awaited_once_with(unverified_user.email, False)
        assert unverified_user.is_locked is False

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_confirmed_request_without_counter(self, db_session, auth_service, unverified_user, mail_service):
        await auth_service.account_verify_send(db_session, unverified_user.email)
        token = token_from_link(mailed_link(mail_service.send_account_verify))
        await auth_service.account_verify_confirm(db_session, token)
        flow = auth_service.account_verify.flow
        request = await flow.requests.get_by_user_id(db_session, unverified_user.id, include_deleted=True)
        counter = await flow.attempts.get_by_request_id(db_session, request.id, include_deleted=True)
        await db_session.delete(counter)
        await db_session.commit()

        with pytest.raises(InternalError) as exc_info:
            await auth_service.account_verify_confirm(db_session, token)

        assert exc_info.value.code == ExceptionMessageCode.INTERNAL_ERROR
        assert exc_info.value.status_code == 500
        mail_service.send_reuse_alert.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_garbage_token(self, db_session, auth_service):
        with pytest.raises(UnauthorizedError) as exc_info:
            await auth_service.account_verify_confirm(db_session, "garbage")

        assert exc_info.value.code == ExceptionMessageCode.INVALID_TOKEN

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_confirm_without_request(self, db_session, auth_service, token_service, unverified_user):
        token = token_service.mint(TokenKind.ACCOUNT_VERIFY, {
            "sub": unverified_user.email,
            "user_id": unverified_user.id,
            "jti": SecurityService.generate_jti(),
        })

        with pytest.raises(NotFoundError) as exc_info:
            await auth_service.account_verify_confirm(db_session, token)

        assert exc_info.value.code == ExceptionMessageCode.ACCOUNT_VERIFICATION_REQUEST_NOT_FOUND


class TestRecoverPassword:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_attempts_are_counted(self, db_session, auth_service, verified_user):
        results = [
            await auth_service.recover_password_send(db_session, verified_user.email)
            for _ in range(3)
        ]

        assert [result.count for result in results] == [1, 2, 3]

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_attempts_beyond_cap_are_refused(self, db_session, auth_service, verified_user):
        for _ in range(settings.MAX_ATTEMPT_COUNT):
            result = await auth_service.recover_password_send(db_session, verified_user.email)
        assert result.cooldown_active is True

        with pytest.raises(ForbiddenError) as exc_info:
            await auth_service.recover_password_send(db_session, verified_user.email)

        assert exc_info.value.code == ExceptionMessageCode.WAIT_FOR_ANOTHER_DAY

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_counter_resets_after_cooldown(self, db_session, auth_service, verified_user):
        for _ in range(settings.MAX_ATTEMPT_COUNT):
            await auth_service.recover_password_send(db_session, verified_user.email)
        await age_counter(db_session, auth_service.recover_password, verified_user)

        result = await auth_service.recover_password_send(db_session, verified_user.email)

        assert result.count == 0

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_temporary_password_applies_on_confirm(self, db_session, auth_service, verified_user, mail_service):
        await auth_service.recover_password_send(db_session, verified_user.email)
        email, link, temporary_password = mail_service.send_password_recover.await_args.args

        assert email == verified_user.email
        assert len(temporary_password) == 6 and temporary_password.isdigit()
        # The old password keeps working until the link is opened
        await auth_service.sign_in(db_session, verified_user.email, DEFAULT_PASSWORD, Platform.WEB)

        outcome = await auth_service.recover_password_confirm(db_session, token_from_link(link))

        assert outcome is ConfirmOutcome.CONFIRMED
        session = await auth_service.sign_in(db_session, verified_user.email, temporary_password, Platform.MOBILE)
        assert session.user_id == verified_user.id
        with pytest.raises(UnauthorizedError):
            await auth_service.sign_in(db_session, verified_user.email, DEFAULT_PASSWORD, Platform.WEB)

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_unverified_user_cannot_recover(self, db_session, auth_service, unverified_user):
        with pytest.raises(ForbiddenError) as exc_info:
            await auth_service.recover_password_send(db_session, unverified_user.email)

        assert exc_info.value.code == ExceptionMessageCode.USER_NOT_VERIFIED

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_token_of_other_flow_is_rejected(self, db_session, auth_service, unverified_user, mail_service):
        await auth_service.account_verify_send(db_session, unverified_user.email)
        token = token_from_link(mailed_link(mail_service.send_account_verify))

        with pytest.raises(NotFoundError) as exc_info:
            await auth_service.recover_password_confirm(db_session, token)

        assert exc_info.value.code == ExceptionMessageCode.RECOVER_PASSWORD_REQUEST_NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_replay_locks_strict_account(self, db_session, auth_service, strict_user, mail_service):
        await auth_service.recover_password_send(db_session, strict_user.email)
        link = mailed_link(mail_service.send_password_recover)
        await auth_service.recover_password_confirm(db_session, token_from_link(link))
        await age_counter(db_session, auth_service.recover_password, strict_user)

        with pytest.raises(ForbiddenError) as exc_info:
            await auth_service.recover_password_confirm(db_session, token_from_link(link))

        assert exc_info.value.code == ExceptionMessageCode.RECOVER_PASSWORD_TOKEN_REUSE
        assert strict_user.is_locked is True
        mail_service.send_reuse_alert.assert_awaited_once_with(strict_user.email, True)


class TestResetPassword:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_reset_applies_new_password_on_confirm(self, db_session, auth_service, verified_user, mail_service):
        result = await auth_service.reset_password_send(
            db_session, verified_user.id, DEFAULT_PASSWORD, NEW_PASSWORD
        )
        assert result.count == 1

        outcome = await auth_service.reset_password_confirm(
            db_session, token_from_link(mailed_link(mail_service.send_password_reset))
        )

        assert outcome is ConfirmOutcome.CONFIRMED
        assert SecurityService.verify_password(NEW_PASSWORD, verified_user.identity.password)

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_wrong_old_password(self, db_session, auth_service, verified_user, mail_service):
        with pytest.raises(UnauthorizedError) as exc_info:
            await auth_service.reset_password_send(db_session, verified_user.id, "WrongPassword1!", NEW_PASSWORD)

        assert exc_info.value.code == ExceptionMessageCode.PASSWORD_INVALID
        mail_service.send_password_reset.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_new_password_must_differ(self, db_session, auth_service, verified_user):
        with pytest.raises(UnauthorizedError) as exc_info:
            await auth_service.reset_password_send(db_session, verified_user.id, DEFAULT_PASSWORD, DEFAULT_PASSWORD)

        assert exc_info.value.code == ExceptionMessageCode.NEW_PASSWORD_SAME

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_locked_user_cannot_reset(self, db_session, auth_service):
        user = await create_user(db_session, is_locked=True)

        with pytest.raises(UnauthorizedError) as exc_info:
            await auth_service.reset_password_send(db_session, user.id, DEFAULT_PASSWORD, NEW_PASSWORD)

        assert exc_info.value.code == ExceptionMessageCode.USER_LOCKED

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_expired_reset_token(self, db_session, build_auth_service, auth_service, past_token_service,
                                       verified_user, mail_service):
        past = build_auth_service(past_token_service)
        await past.reset_password_send(db_session, verified_user.id, DEFAULT_PASSWORD, NEW_PASSWORD)

        with pytest.raises(ForbiddenError) as exc_info:
            await auth_service.reset_password_confirm(
                db_session, token_from_link(mailed_link(mail_service.send_password_reset))
            )

        assert exc_info.value.code == ExceptionMessageCode.TOKEN_EXPIRED
