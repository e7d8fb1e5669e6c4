"""
Camera Privacy Manager Web Blueprints Package.

This package contains Flask Blueprints for modular route organization.
"""

from web.blueprints.privacy_api import privacy_api

__all__ = ["privacy_api"]
