"""
Camera Privacy Manager Services Package.

This package contains service layer functions that encapsulate business logic,
separating it from Flask routes for better testability and maintainability.

ARCHITECTURE RULE:
- Services may ONLY import from core/* modules
- Services MUST NOT import directly from utils/, camera/
"""

from web.services import privacy_service

__all__ = [
    "privacy_service",
]
