"""
relaybot Services - external collaborators of a worker.

- ui_conduit: abstract UI automation surface
- playwright_conduit: Playwright/Chromium implementation of the conduit
- session_store: credential persistence per worker identity
"""

from .session_store import FileSessionStore, SessionStore
from .ui_conduit import UIConduit

__all__ = ["FileSessionStore", "SessionStore", "UIConduit"]
