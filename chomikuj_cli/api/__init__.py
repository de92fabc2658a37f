"""
ChomikBox API Layer.

This package handles all communication with the ChomikBox SOAP service:
the HTTP transport, the envelope codec and the authenticated session.
"""

from .session import ChomikboxSession
from .transport import HttpTransport

__all__ = ["ChomikboxSession", "HttpTransport"]
