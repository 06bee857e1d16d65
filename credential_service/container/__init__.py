"""
Dependency injection container for managing service dependencies.
Provides centralized configuration and management of service instances
following the Dependency Inversion Principle.
"""

from .container import Container, get_container, initialize_container, reset_container

__all__ = [
    "Container",
    "get_container",
    "initialize_container",
    "reset_container",
]
