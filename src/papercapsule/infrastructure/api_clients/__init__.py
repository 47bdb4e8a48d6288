from papercapsule.infrastructure.api_clients.base import APIClient

__all__ = ["APIClient"]
