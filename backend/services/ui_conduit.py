"""
UI Conduit - abstract automation surface for one worker's session.

The lifecycle, the ingestion pipeline and the messenger only talk to the
page through this interface. Change notifications are an async stream so
any push-based (DOM observer) or poll-based implementation fits.

Fallible operations raise ConduitError; ``wait_for`` reports a timeout as
False instead, since "marker not there yet" is an expected outcome.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Sequence

from worker.models import Credential, RawChangeEvent


class UIConduit(ABC):
    """Abstract automation surface (navigate, observe, read, act)."""

    @abstractmethod
    async def navigate(self) -> None:
        """Open (or reopen) the target application. Launches the browser if needed."""
        ...

    @abstractmethod
    async def is_alive(self) -> bool:
        """Whether the page is open and responsive."""
        ...

    @abstractmethod
    async def wait_for(self, locator: str, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for ``locator`` to appear."""
        ...

    @abstractmethod
    def subscribe_to_changes(
        self, scope: str, attributes: Optional[Sequence[str]] = None
    ) -> AsyncIterator[RawChangeEvent]:
        """Stream change notifications under the element matching ``scope``.

        Text and subtree changes are always reported; attribute changes only
        for the names in ``attributes``. The stream ends when the conduit is
        closed.
        """
        ...

    @abstractmethod
    async def read_text(self, locator: str, timeout: Optional[float] = None) -> Optional[str]:
        """Text of the last element matching ``locator``, or None if absent."""
        ...

    @abstractmethod
    async def read_attribute(self, locator: str, name: str, timeout: Optional[float] = None) -> Optional[str]:
        """Attribute of the last element matching ``locator``, or None if absent."""
        ...

    @abstractmethod
    async def read_attributes(self, locator: str, name: str) -> List[Optional[str]]:
        """Attribute of every element matching ``locator``, in document order."""
        ...

    @abstractmethod
    async def click(self, locator: str, index: Optional[int] = None) -> None:
        """Click the first match, or the ``index``-th one when given."""
        ...

    @abstractmethod
    async def type(self, locator: str, text: str) -> None:
        ...

    @abstractmethod
    async def press(self, locator: str, key: str) -> None:
        ...

    @abstractmethod
    async def upload_file(self, locator: str, path: str) -> None:
        ...

    @abstractmethod
    async def export_credential(self) -> Credential:
        """Capture the current session (cookies and localStorage)."""
        ...

    @abstractmethod
    async def apply_credential(self, credential: Credential) -> None:
        """Install a stored session into the page."""
        ...

    @abstractmethod
    async def close(self, discard_profile: bool = False) -> None:
        """Release every browser resource and end active subscriptions.

        With ``discard_profile`` the on-disk browser profile is deleted too.
        Closing an already closed conduit is a no-op.
        """
        ...
