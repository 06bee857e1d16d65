"""
Credential lifecycle services.
Each service handles one concern: token signing, the refresh token ledger,
attempt limiting, the self-service flows and the orchestration on top.
"""

from .authentication_service import AuthenticationService, IssuedSession
from .token_service import TokenService, TokenKind
from .refresh_token_service import RefreshTokenService
from .attempt_limiter import AttemptLimiter, AttemptResult
from .self_service_flow import SelfServiceFlow, SelfServiceFlowService, ConfirmOutcome, build_flows
from .reuse_escalation import ReuseEscalation

__all__ = [
    "AuthenticationService",
    "IssuedSession",
    "TokenService",
    "TokenKind",
    "RefreshTokenService",
    "AttemptLimiter",
    "AttemptResult",
    "SelfServiceFlow",
    "SelfServiceFlowService",
    "ConfirmOutcome",
    "build_flows",
    "ReuseEscalation",
]
