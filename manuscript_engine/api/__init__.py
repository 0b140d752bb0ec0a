"""
HTTP API Module

FastAPI surface for the version graph. The engine never imports this
package; it is an outer layer only.
"""

from .server import create_app

__all__ = ['create_app']
