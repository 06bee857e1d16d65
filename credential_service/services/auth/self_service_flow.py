"""
Self-service flows: account verification, password recovery and password reset.

All three share one send/confirm state machine. A flow definition supplies
what differs: the user-state precondition, the token kind, the effect applied
at confirm and the flow-specific error codes. The replay protocol lives here
once.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ...core.config import settings
from ...core.exceptions import (
    ExceptionMessageCode,
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from ...core.security import SecurityService
from ...events.auth_events import SelfServiceConfirmedEvent
from ...interfaces.event_interface import IEvent
from ...interfaces.repository_interface import (
    IAttemptCountRepository,
    ISelfServiceRequestRepository,
    IUserRepository,
)
from ...models.base import utcnow
from ...models.user import User
from ...repositories.self_service_repository import (
    account_verification_repositories,
    recover_password_repositories,
    reset_password_repositories,
)
from .attempt_limiter import AttemptLimiter, AttemptResult
from .reuse_escalation import ReuseEscalation
from .token_service import TokenService, TokenKind

logger = structlog.get_logger()

Effect = Callable[[AsyncSession, User, Any], Awaitable[None]]


class ConfirmOutcome(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"


@dataclass(frozen=True)
class SelfServiceFlow:
    """What distinguishes one self-service flow from another."""

    name: str
    path: str
    token_kind: TokenKind
    requests: ISelfServiceRequestRepository
    attempts: IAttemptCountRepository
    precondition: Callable[[User], None]
    effect: Effect
    token_reuse_code: ExceptionMessageCode
    request_not_found_code: ExceptionMessageCode
    request_invalid_code: ExceptionMessageCode


@dataclass(frozen=True)
class SendResult:
    user: User
    request: Any
    security_token: str
    attempt: AttemptResult


def require_unverified(user: User) -> None:
    if user.is_account_verified:
        raise ForbiddenError(ExceptionMessageCode.USER_ALREADY_VERIFIED)


def require_verified(user: User) -> None:
    if not user.is_account_verified:
        raise ForbiddenError(ExceptionMessageCode.USER_NOT_VERIFIED)


def require_verified_and_unlocked(user: User) -> None:
    require_verified(user)
    if user.is_locked:
        raise UnauthorizedError(ExceptionMessageCode.USER_LOCKED)


def build_flows(user_repository: IUserRepository) -> Dict[str, SelfServiceFlow]:
    """The three flows keyed by name."""

    async def mark_verified(db: AsyncSession, user: User, request: Any) -> None:
        await user_repository.set_verified(db, user.id)

    async def apply_pending_password(db: AsyncSession, user: User, request: Any) -> None:
        await user_repository.update_password(db, user.id, request.new_password)

    verify_requests, verify_attempts = account_verification_repositories()
    recover_requests, recover_attempts = recover_password_repositories()
    reset_requests, reset_attempts = reset_password_repositories()

    flows = [
        SelfServiceFlow(
            name="account_verify",
            path="account-verify",
            token_kind=TokenKind.ACCOUNT_VERIFY,
            requests=verify_requests,
            attempts=verify_attempts,
            precondition=require_unverified,
            effect=mark_verified,
            token_reuse_code=ExceptionMessageCode.ACCOUNT_VERIFICATION_TOKEN_REUSE,
            request_not_found_code=ExceptionMessageCode.ACCOUNT_VERIFICATION_REQUEST_NOT_FOUND,
            request_invalid_code=ExceptionMessageCode.ACCOUNT_VERIFICATION_REQUEST_INVALID,
        ),
        SelfServiceFlow(
            name="recover_password",
            path="recover-password",
            token_kind=TokenKind.RECOVER_PASSWORD,
            requests=recover_requests,
            attempts=recover_attempts,
            precondition=require_verified,
            effect=apply_pending_password,
            token_reuse_code=ExceptionMessageCode.RECOVER_PASSWORD_TOKEN_REUSE,
            request_not_found_code=ExceptionMessageCode.RECOVER_PASSWORD_REQUEST_NOT_FOUND,
            request_invalid_code=ExceptionMessageCode.RECOVER_PASSWORD_REQUEST_INVALID,
        ),
        SelfServiceFlow(
            name="reset_password",
            path="reset-password",
            token_kind=TokenKind.RESET_PASSWORD,
            requests=reset_requests,
            attempts=reset_attempts,
            precondition=require_verified_and_unlocked,
            effect=apply_pending_password,
            token_reuse_code=ExceptionMessageCode.RESET_PASSWORD_TOKEN_REUSE,
            request_not_found_code=ExceptionMessageCode.RESET_PASSWORD_REQUEST_NOT_FOUND,
            request_invalid_code=ExceptionMessageCode.RESET_PASSWORD_REQUEST_INVALID,
        ),
    ]
    return {flow.name: flow for flow in flows}


class SelfServiceFlowService:
    """Runs send and confirm for one flow inside the caller's transaction."""

    def __init__(
        self,
        flow: SelfServiceFlow,
        token_service: TokenService,
        user_repository: IUserRepository,
        escalation: ReuseEscalation,
        limiter: Optional[AttemptLimiter] = None,
        replay_window_seconds: Optional[int] = None
    ):
        self.flow = flow
        self.token_service = token_service
        self.user_repository = user_repository
        self.escalation = escalation
        self.limiter = limiter or AttemptLimiter(flow.attempts)
        self.replay_window = timedelta(
            seconds=replay_window_seconds or settings.ATTEMPT_COOLDOWN_IN_SEC
        )

    async def send(
        self,
        db: AsyncSession,
        user: User,
        new_password_hash: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> SendResult:
        """
        Issue a fresh request for the user, replacing any outstanding one.

        Raises:
            ForbiddenError: precondition violated or attempts exhausted
        """
        self.flow.precondition(user)

        jti = SecurityService.generate_jti()
        security_token = self.token_service.mint(
            self.flow.token_kind,
            {"sub": user.email, "user_id": user.id, "jti": jti}
        )

        request = await self.flow.requests.get_by_user_id(db, user.id, include_deleted=True)
        created = None
        if request is None:
            created = await self.flow.requests.create(
                db,
                user_id=user.id,
                security_token=security_token,
                jti=jti,
                new_password=new_password_hash
            )
            if created is None:
                # A concurrent send for the same user inserted the row first
                request = await self.flow.requests.get_by_user_id(
                    db, user.id, include_deleted=True
                )

        if created is not None:
            request = created
        else:
            request = await self.flow.requests.update_token(
                db,
                request,
                security_token=security_token,
                jti=jti,
                new_password=new_password_hash
            )

        attempt = await self.limiter.register_attempt(db, request.id, now=now)

        logger.info(
            "Self-service request issued",
            flow=self.flow.name,
            user_id=user.id,
            attempt_count=attempt.count
        )
        return SendResult(user=user, request=request, security_token=security_token, attempt=attempt)

    async def confirm(
        self,
        db: AsyncSession,
        token: str,
        events: List[IEvent],
        now: Optional[datetime] = None
    ) -> ConfirmOutcome:
        """
        Confirm a request with its security token and apply the flow's effect.

        A token whose request was already confirmed succeeds without effect
        inside the replay window and is escalated as replay abuse after it.
        """
        now = now or utcnow()
        claims = self.token_service.decode_unverified(token)

        user = await self.user_repository.get_by_id(db, claims["user_id"])
        if user is None:
            raise NotFoundError(ExceptionMessageCode.USER_NOT_FOUND)

        confirmed = await self.flow.requests.get_by_jti(db, claims["jti"], include_deleted=True)
        if confirmed is not None and confirmed.is_deleted:
            return await self._handle_replay(db, user, confirmed, token, events, now)

        request = await self.flow.requests.get_by_user_id(db, user.id)
        if request is None:
            raise NotFoundError(self.flow.request_not_found_code)

        if token != request.security_token:
            raise ForbiddenError(self.flow.request_invalid_code)

        self.flow.precondition(user)

        self.token_service.verify(
            self.flow.token_kind,
            token,
            expected_claims={"sub": user.email, "user_id": user.id, "jti": request.jti}
        )

        await self.flow.effect(db, user, request)
        await self.flow.requests.soft_delete(db, request)
        counter = await self.flow.attempts.get_by_request_id(db, request.id)
        if counter is not None:
            await self.flow.attempts.soft_delete(db, counter)

        events.append(SelfServiceConfirmedEvent(user_id=user.id, flow=self.flow.name))
        logger.info("Self-service request confirmed", flow=self.flow.name, user_id=user.id)
        return ConfirmOutcome.CONFIRMED

    async def _handle_replay(
        self,
        db: AsyncSession,
        user: User,
        request: Any,
        token: str,
        events: List[IEvent],
        now: datetime
    ) -> ConfirmOutcome:
        if token != request.security_token:
            raise ForbiddenError(self.flow.request_invalid_code)

        counter = await self.flow.attempts.get_by_request_id(db, request.id, include_deleted=True)
        if counter is None:
            logger.error(
                "Attempt counter missing for confirmed request",
                flow=self.flow.name,
                request_id=request.id
            )
            raise InternalError()

        if now - counter.count_increase_last_update_date > self.replay_window:
            events.append(
                await self.escalation.escalate(db, user, source=self.flow.name, jti=request.jti)
            )
            raise ForbiddenError(self.flow.token_reuse_code, keep_changes=True)

        logger.info("Duplicate confirm ignored", flow=self.flow.name, user_id=user.id)
        return ConfirmOutcome.ALREADY_CONFIRMED
