from .base import TestClient
from .transport import ASGISpecViolation, TestClientTransport

__all__ = ["ASGISpecViolation", "TestClient", "TestClientTransport"]
