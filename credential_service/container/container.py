"""
Dependency injection container implementation.
Holds the process-wide service instances and wires their dependencies.
"""

from typing import Dict, Any, TypeVar, Type, Optional
import structlog

from ..core.config import settings
from ..events.event_bus import InMemoryEventBus
from ..events.mail_handlers import MailEventHandler, log_security_event
from ..interfaces.event_interface import IEventBus
from ..interfaces.mail_interface import IMailService
from ..interfaces.repository_interface import IUserRepository, IRefreshTokenRepository
from ..repositories.user_repository import UserRepository
from ..repositories.refresh_token_repository import RefreshTokenRepository
from ..services.auth.authentication_service import AuthenticationService
from ..services.auth.refresh_token_service import RefreshTokenService
from ..services.auth.token_service import TokenService
from ..services.mail_service import MailService

logger = structlog.get_logger()

T = TypeVar('T')


class Container:
    """Dependency injection container."""

    def __init__(self):
        self._instances: Dict[str, Any] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def register_instance(self, interface: Type[T], instance: T) -> None:
        """
        Register a specific instance for an interface.

        Args:
            interface: Interface type
            instance: Instance to register
        """
        key = interface.__name__
        self._instances[key] = instance
        logger.debug("Registered instance", interface=key, instance=type(instance).__name__)

    def get(self, interface: Type[T]) -> T:
        """
        Get service instance by interface type.

        Raises:
            ValueError: If service is not registered
        """
        key = interface.__name__
        if key in self._instances:
            return self._instances[key]
        raise ValueError(f"Service not registered: {key}")

    async def initialize(
        self,
        mail_service: Optional[IMailService] = None,
        token_service: Optional[TokenService] = None
    ) -> None:
        """Build and register the default services. Idempotent."""
        if self._initialized:
            return

        event_bus = InMemoryEventBus()
        mail_service = mail_service or MailService(settings)
        token_service = token_service or TokenService(settings)

        await MailEventHandler(mail_service).register(event_bus)
        await event_bus.subscribe_to_all(log_security_event)

        user_repository = UserRepository()
        refresh_token_repository = RefreshTokenRepository()

        self.register_instance(IEventBus, event_bus)
        self.register_instance(IMailService, mail_service)
        self.register_instance(TokenService, token_service)
        self.register_instance(IUserRepository, user_repository)
        self.register_instance(IRefreshTokenRepository, refresh_token_repository)
        self.register_instance(
            AuthenticationService,
            AuthenticationService(
                user_repository=user_repository,
                token_service=token_service,
                refresh_token_service=RefreshTokenService(token_service, refresh_token_repository),
                event_bus=event_bus
            )
        )

        self._initialized = True
        logger.info("Dependency injection container initialized")


# Global container instance
_container: Optional[Container] = None


def get_container() -> Container:
    """Get the global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


async def initialize_container() -> Container:
    """Initialize and return the global container."""
    container = get_container()
    await container.initialize()
    return container


def reset_container() -> None:
    """Drop the global container; the next get_container() builds a new one."""
    global _container
    _container = None
