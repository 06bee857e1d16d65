"""
Authentication service: the credential lifecycle orchestrator.

Drives sign-up, sign-in, refresh, sign-out and the send/confirm entry points
of the self-service flows. Each operation runs in one transaction; events
collected along the way are published only after that transaction is done.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ...core.config import Settings, settings as default_settings
from ...core.database import transaction
from ...core.exceptions import (
    CredentialError,
    ExceptionMessageCode,
    InvalidTokenError,
    NotFoundError,
    RefreshTokenExpiredError,
    TokenExpiredError,
    UnauthorizedError,
)
from ...core.security import SecurityService
from ...events.auth_events import (
    AccountVerifyRequestedEvent,
    PasswordRecoverRequestedEvent,
    PasswordResetRequestedEvent,
    TokenRefreshedEvent,
    UserSignedInEvent,
    UserSignedOutEvent,
    UserSignedUpEvent,
)
from ...interfaces.event_interface import IEvent, IEventBus
from ...interfaces.repository_interface import IUserRepository
from ...models.refresh_token import Platform
from ...models.user import User
from ..mail_service import redact_email
from .attempt_limiter import AttemptResult
from .refresh_token_service import RefreshTokenService
from .reuse_escalation import ReuseEscalation
from .self_service_flow import (
    ConfirmOutcome,
    SelfServiceFlow,
    SelfServiceFlowService,
    build_flows,
)
from .token_service import TokenService, TokenKind

logger = structlog.get_logger()

Operation = Callable[[AsyncSession, List[IEvent]], Awaitable[Any]]


@dataclass(frozen=True)
class IssuedSession:
    """Token pair in transport form plus the verification flag."""

    user_id: int
    access_token: str
    refresh_token: str
    is_account_verified: bool


class AuthenticationService:
    """Service responsible for the credential lifecycle."""

    def __init__(
        self,
        user_repository: IUserRepository,
        token_service: TokenService,
        refresh_token_service: RefreshTokenService,
        event_bus: IEventBus,
        flows: Optional[Dict[str, SelfServiceFlow]] = None,
        settings: Settings = default_settings
    ):
        self.user_repository = user_repository
        self.token_service = token_service
        self.refresh_token_service = refresh_token_service
        self.event_bus = event_bus
        self.settings = settings
        self.escalation = ReuseEscalation(user_repository)

        flows = flows or build_flows(user_repository)
        self.account_verify = self._flow_service(flows["account_verify"])
        self.recover_password = self._flow_service(flows["recover_password"])
        self.reset_password = self._flow_service(flows["reset_password"])

    def _flow_service(self, flow: SelfServiceFlow) -> SelfServiceFlowService:
        return SelfServiceFlowService(
            flow,
            token_service=self.token_service,
            user_repository=self.user_repository,
            escalation=self.escalation
        )

    async def _execute(self, db: Optional[AsyncSession], operation: Operation) -> Any:
        """
        Run an operation atomically, then publish the events it collected.

        Events of a failed operation are published only when the failure kept
        its changes (reuse and replay escalation).
        """
        events: List[IEvent] = []
        try:
            async with transaction(db) as tx:
                result = await operation(tx, events)
        except CredentialError as e:
            if e.keep_changes:
                await self._publish(events)
            raise
        await self._publish(events)
        return result

    async def _publish(self, events: List[IEvent]) -> None:
        for event in events:
            await self.event_bus.publish(event)

    async def _issue_session(self, db: AsyncSession, user: User, platform: Platform) -> IssuedSession:
        record = await self.refresh_token_service.issue(
            db,
            user_id=user.id,
            platform=platform,
            claims={"sub": user.email}
        )
        access_token = self.token_service.mint(
            TokenKind.ACCESS,
            {"sub": user.email, "user_id": user.id, "jti": SecurityService.generate_jti()}
        )
        return IssuedSession(
            user_id=user.id,
            access_token=self.token_service.encrypt_for_transport(access_token),
            refresh_token=self.token_service.encrypt_for_transport(record.token),
            is_account_verified=user.is_account_verified
        )

    def _confirm_link(self, flow: SelfServiceFlow, security_token: str) -> str:
        base = self.settings.BACKEND_URL.rstrip("/")
        query = urlencode({"token": security_token})
        return f"{base}/authentication/{flow.path}/confirm?{query}"

    # Sessions

    async def sign_up(
        self,
        db: Optional[AsyncSession],
        email: str,
        user_name: str,
        password: str,
        platform: Platform
    ) -> IssuedSession:
        async def operation(tx: AsyncSession, events: List[IEvent]) -> IssuedSession:
            if await self.user_repository.exists_by_email(tx, email):
                raise UnauthorizedError(ExceptionMessageCode.USER_EMAIL_EXISTS)

            user = await self.user_repository.create(
                tx,
                email=email,
                user_name=user_name,
                password_hash=SecurityService.get_password_hash(password)
            )
            issued = await self._issue_session(tx, user, platform)
            events.append(UserSignedUpEvent(user_id=user.id, platform=platform.value))
            return issued

        issued = await self._execute(db, operation)
        logger.info("User signed up", user_id=issued.user_id, email=redact_email(email))
        return issued

    async def sign_in(
        self,
        db: Optional[AsyncSession],
        email: str,
        password: str,
        platform: Platform
    ) -> IssuedSession:
        """
        Authenticate with email and password.

        Unknown email and wrong password fail identically. Unverified
        accounts may sign in; locked accounts may not.
        """
        async def operation(tx: AsyncSession, events: List[IEvent]) -> IssuedSession:
            user = await self.user_repository.get_by_email(tx, email)
            if user is None or user.identity is None:
                SecurityService.dummy_verify()
                raise UnauthorizedError(ExceptionMessageCode.EMAIL_OR_PASSWORD_INVALID)

            if not SecurityService.verify_password(password, user.identity.password):
                raise UnauthorizedError(ExceptionMessageCode.EMAIL_OR_PASSWORD_INVALID)

            if user.is_locked:
                raise UnauthorizedError(ExceptionMessageCode.USER_LOCKED)

            issued = await self._issue_session(tx, user, platform)
            events.append(UserSignedInEvent(user_id=user.id, platform=platform.value))
            return issued

        return await self._execute(db, operation)

    async def refresh(
        self,
        db: Optional[AsyncSession],
        presented_token: Optional[str],
        platform: Platform
    ) -> IssuedSession:
        """
        Rotate a refresh token.

        A token whose record is gone has been used before. The check runs
        ahead of signature verification: jti values are unguessable, so a
        missing record is trusted on its own. Every refresh token of the user
        is revoked, strict-mode accounts are locked and an alert goes out.

        Raises:
            InvalidTokenError: missing, undecryptable or forged token
            UnauthorizedError: REFRESH_TOKEN_REUSE or USER_LOCKED
            RefreshTokenExpiredError: the token expired; its record is deleted
        """
        async def operation(tx: AsyncSession, events: List[IEvent]) -> IssuedSession:
            token = self.token_service.decrypt_for_transport(presented_token)
            if token is None:
                raise InvalidTokenError()

            claims = self.token_service.decode_unverified(token)

            record = await self.refresh_token_service.get_by_jti(tx, claims["jti"])
            if record is None:
                await self._handle_refresh_reuse(tx, claims, events)

            user = await self.user_repository.get_by_id(tx, record.user_id)
            if user is None:
                raise NotFoundError(ExceptionMessageCode.USER_NOT_FOUND)
            if user.is_locked:
                raise UnauthorizedError(ExceptionMessageCode.USER_LOCKED)

            try:
                self.refresh_token_service.verify_against_record(token, record)
            except TokenExpiredError:
                await self.refresh_token_service.consume(tx, record.jti)
                logger.info("Expired refresh token removed", user_id=user.id)
                raise RefreshTokenExpiredError(keep_changes=True)

            if not await self.refresh_token_service.consume(tx, record.jti):
                # Lost a race with a concurrent rotation of the same token
                await self._handle_refresh_reuse(tx, claims, events)

            issued = await self._issue_session(tx, user, platform)
            events.append(TokenRefreshedEvent(user_id=user.id, platform=platform.value))
            return issued

        return await self._execute(db, operation)

    async def _handle_refresh_reuse(
        self,
        db: AsyncSession,
        claims: Dict[str, Any],
        events: List[IEvent]
    ) -> None:
        user_id = claims["user_id"]
        revoked = await self.refresh_token_service.revoke_all(db, user_id)
        logger.warning("Refresh token reuse detected", user_id=user_id, revoked=revoked)

        user = await self.user_repository.get_by_id(db, user_id)
        if user is not None:
            events.append(
                await self.escalation.escalate(db, user, source="refresh_token", jti=claims["jti"])
            )
        raise UnauthorizedError(ExceptionMessageCode.REFRESH_TOKEN_REUSE, keep_changes=True)

    async def sign_out(self, db: Optional[AsyncSession], presented_token: Optional[str]) -> None:
        """
        Consume the record of a refresh token; expiry is ignored.

        An unknown or already consumed token is a no-op.
        """
        async def operation(tx: AsyncSession, events: List[IEvent]) -> None:
            token = self.token_service.decrypt_for_transport(presented_token)
            if token is None:
                raise InvalidTokenError()

            claims = self.token_service.verify_signature_only(TokenKind.REFRESH, token)
            jti = claims.get("jti")
            if not isinstance(jti, str):
                raise InvalidTokenError()

            if await self.refresh_token_service.consume(tx, jti):
                events.append(UserSignedOutEvent(user_id=claims.get("user_id")))
            else:
                logger.debug("Sign-out with a consumed refresh token")

        await self._execute(db, operation)

    async def authenticate_access_token(self, db: AsyncSession, presented_token: Optional[str]) -> User:
        """
        Resolve the user behind an access token.

        Raises:
            InvalidTokenError: missing, undecryptable, forged or orphaned token
            UnauthorizedError: TOKEN_EXPIRED or USER_LOCKED
        """
        token = self.token_service.decrypt_for_transport(presented_token)
        if token is None:
            raise InvalidTokenError()

        try:
            claims = self.token_service.verify(TokenKind.ACCESS, token)
        except TokenExpiredError:
            raise UnauthorizedError(ExceptionMessageCode.TOKEN_EXPIRED)

        user = await self.user_repository.get_by_id(db, claims.get("user_id"))
        if user is None or user.email != claims.get("sub"):
            raise InvalidTokenError()
        if user.is_locked:
            raise UnauthorizedError(ExceptionMessageCode.USER_LOCKED)
        return user

    # Self-service flows

    async def _user_by_email(self, db: AsyncSession, email: str) -> User:
        user = await self.user_repository.get_by_email(db, email)
        if user is None:
            raise NotFoundError(ExceptionMessageCode.USER_NOT_FOUND)
        return user

    async def account_verify_send(self, db: Optional[AsyncSession], email: str) -> AttemptResult:
        async def operation(tx: AsyncSession, events: List[IEvent]) -> AttemptResult:
            user = await self._user_by_email(tx, email)
            sent = await self.account_verify.send(tx, user)
            events.append(AccountVerifyRequestedEvent(
                user_id=user.id,
                email=user.email,
                link=self._confirm_link(self.account_verify.flow, sent.security_token),
                attempt_count=sent.attempt.count
            ))
            return sent.attempt

        return await self._execute(db, operation)

    async def account_verify_confirm(self, db: Optional[AsyncSession], token: str) -> ConfirmOutcome:
        return await self._execute(
            db, lambda tx, events: self.account_verify.confirm(tx, token, events)
        )

    async def recover_password_send(self, db: Optional[AsyncSession], email: str) -> AttemptResult:
        """
        Mail a temporary password that becomes active once the link is opened.
        """
        async def operation(tx: AsyncSession, events: List[IEvent]) -> AttemptResult:
            user = await self._user_by_email(tx, email)
            temporary_password = SecurityService.generate_temporary_password()
            sent = await self.recover_password.send(
                tx,
                user,
                new_password_hash=SecurityService.get_password_hash(temporary_password)
            )
            events.append(PasswordRecoverRequestedEvent(
                user_id=user.id,
                email=user.email,
                link=self._confirm_link(self.recover_password.flow, sent.security_token),
                temporary_password=temporary_password,
                attempt_count=sent.attempt.count
            ))
            return sent.attempt

        return await self._execute(db, operation)

    async def recover_password_confirm(self, db: Optional[AsyncSession], token: str) -> ConfirmOutcome:
        return await self._execute(
            db, lambda tx, events: self.recover_password.confirm(tx, token, events)
        )

    async def reset_password_send(
        self,
        db: Optional[AsyncSession],
        user_id: int,
        old_password: str,
        new_password: str
    ) -> AttemptResult:
        """
        Request a password change for a signed-in user.

        The new hash waits on the request until the mailed link is confirmed.
        """
        async def operation(tx: AsyncSession, events: List[IEvent]) -> AttemptResult:
            user = await self.user_repository.get_by_id(tx, user_id)
            if user is None or user.identity is None:
                raise NotFoundError(ExceptionMessageCode.USER_NOT_FOUND)

            if not SecurityService.verify_password(old_password, user.identity.password):
                raise UnauthorizedError(ExceptionMessageCode.PASSWORD_INVALID)
            if old_password == new_password:
                raise UnauthorizedError(ExceptionMessageCode.NEW_PASSWORD_SAME)

            sent = await self.reset_password.send(
                tx,
                user,
                new_password_hash=SecurityService.get_password_hash(new_password)
            )
            events.append(PasswordResetRequestedEvent(
                user_id=user.id,
                email=user.email,
                link=self._confirm_link(self.reset_password.flow, sent.security_token),
                attempt_count=sent.attempt.count
            ))
            return sent.attempt

        return await self._execute(db, operation)

    async def reset_password_confirm(self, db: Optional[AsyncSession], token: str) -> ConfirmOutcome:
        return await self._execute(
            db, lambda tx, events: self.reset_password.confirm(tx, token, events)
        )
