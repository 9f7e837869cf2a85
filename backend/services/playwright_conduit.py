"""
Playwright Conduit - Chromium implementation of UIConduit.

One persistent Chromium context per worker identity, so the browser
profile survives restarts alongside the stored credential.

Change notifications come from a page-side MutationObserver. Each
subscription installs its own observer; batches of mutation records are
pushed back through a binding exposed with ``page.expose_binding`` and
routed into the subscription's asyncio.Queue.
"""

import asyncio
import itertools
import logging
import shutil
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from playwright.async_api import (
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PWTimeout,
    async_playwright,
)

from errors import ConduitError
from worker.models import ChangeKind, Credential, Identity, RawChangeEvent
from worker.selectors import WHATSAPP_WEB_URL
from .ui_conduit import UIConduit

logger = logging.getLogger(__name__)

BINDING_NAME = "__relayChange"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/133.0.0.0 Safari/537.36"
)

# Payload text is truncated page-side to keep binding traffic small
PAYLOAD_LIMIT = 2000

OBSERVE_SCRIPT = """
({id, scope, attributes, limit, binding}) => {
  const registry = (window.__relayObservers = window.__relayObservers || {});
  const hintFor = (node) => {
    let el = node && node.nodeType === 3 ? node.parentElement : node;
    while (el && el.nodeType === 1) {
      const label = el.getAttribute('aria-label');
      if (label) return `[aria-label="${label.replace(/"/g, '\\\\"')}"]`;
      el = el.parentElement;
    }
    return null;
  };
  const clip = (text) => (text || '').slice(0, limit);
  const attach = () => {
    const root = document.querySelector(scope);
    if (!root) {
      registry[id] = {timer: setTimeout(attach, 1000)};
      return;
    }
    const observer = new MutationObserver((mutations) => {
      const records = [];
      for (const m of mutations) {
        if (m.type === 'characterData') {
          records.push({kind: 'text', locator: hintFor(m.target), text: clip(m.target.data)});
        } else if (m.type === 'attributes') {
          records.push({kind: 'attribute', locator: null, text: m.target.getAttribute(m.attributeName)});
        } else {
          for (const node of m.addedNodes) {
            const text = node.nodeType === 1 ? node.outerHTML : node.textContent;
            records.push({kind: 'subtree', locator: hintFor(node), text: clip(text)});
          }
        }
      }
      if (records.length) window[binding](id, records);
    });
    const options = {childList: true, characterData: true, subtree: true};
    if (attributes && attributes.length) {
      options.attributes = true;
      options.attributeFilter = attributes;
    }
    observer.observe(root, options);
    registry[id] = {observer};
    // current values count as the first change
    const snapshot = (attributes || [])
      .filter((name) => root.hasAttribute(name))
      .map((name) => ({kind: 'attribute', locator: null, text: root.getAttribute(name)}));
    if (snapshot.length) window[binding](id, snapshot);
  };
  attach();
}
"""

UNOBSERVE_SCRIPT = """
(id) => {
  const registry = window.__relayObservers || {};
  const entry = registry[id];
  if (!entry) return;
  if (entry.observer) entry.observer.disconnect();
  if (entry.timer) clearTimeout(entry.timer);
  delete registry[id];
}
"""

LOCAL_STORAGE_DUMP = "() => Object.assign({}, window.localStorage)"

LOCAL_STORAGE_LOAD = """
(entries) => {
  for (const [key, value] of Object.entries(entries)) window.localStorage.setItem(key, value);
}
"""


class PlaywrightConduit(UIConduit):
    """UIConduit backed by a persistent Playwright Chromium context."""

    def __init__(
        self,
        identity: Identity,
        user_data_dir: str | Path = "data/user_data",
        headless: bool = False,
        url: str = WHATSAPP_WEB_URL,
        navigation_timeout: float = 60.0,
        action_timeout: float = 10.0,
    ):
        self.identity = identity
        self.profile_dir = Path(user_data_dir) / identity.account_id / identity.worker_id
        self.headless = headless
        self.url = url
        self.navigation_timeout = navigation_timeout
        self.action_timeout = action_timeout

        self._playwright: Optional[Playwright] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._subscriptions: Dict[str, asyncio.Queue] = {}
        self._sub_ids = itertools.count()

    # -------------------------------------------------------------------------
    # Browser management
    # -------------------------------------------------------------------------

    async def _launch(self) -> None:
        """Launch Chromium with a persistent profile for this identity."""
        await asyncio.to_thread(self.profile_dir.mkdir, parents=True, exist_ok=True)
        self._playwright = await async_playwright().start()
        self._context = await self._playwright.chromium.launch_persistent_context(
            user_data_dir=str(self.profile_dir),
            headless=self.headless,
            user_agent=USER_AGENT,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
                "--no-sandbox",
            ],
        )
        self._page = self._context.pages[0] if self._context.pages else await self._context.new_page()
        self._page.set_default_timeout(self.action_timeout * 1000)
        await self._page.expose_binding(BINDING_NAME, self._on_binding)
        logger.info(f"[{self.identity.key}] Browser launched (profile={self.profile_dir})")

    def _require_page(self, locator: Optional[str] = None) -> Page:
        if self._page is None or self._page.is_closed():
            raise ConduitError("Page is not open", locator=locator, identity=self.identity.key)
        return self._page

    def _on_binding(self, source: Any, sub_id: str, records: List[Dict[str, Any]]) -> None:
        queue = self._subscriptions.get(sub_id)
        if queue is None:
            return
        for record in records:
            try:
                kind = ChangeKind(record.get("kind"))
            except ValueError:
                continue
            queue.put_nowait(
                RawChangeEvent(kind=kind, locator_hint=record.get("locator"), payload_text=record.get("text"))
            )

    # -------------------------------------------------------------------------
    # UIConduit interface
    # -------------------------------------------------------------------------

    async def navigate(self) -> None:
        try:
            if self._context is None:
                await self._launch()
            page = self._require_page()
            await page.goto(self.url, wait_until="domcontentloaded", timeout=self.navigation_timeout * 1000)
        except PWTimeout as e:
            raise ConduitError("Navigation timed out", details=str(e), error_type="timeout", url=self.url) from e
        except PlaywrightError as e:
            raise ConduitError("Navigation failed", details=str(e), url=self.url) from e

    async def is_alive(self) -> bool:
        if self._page is None or self._page.is_closed():
            return False
        try:
            await self._page.title()
            return True
        except PlaywrightError as e:
            logger.debug(f"[{self.identity.key}] Page is not active: {e}")
            return False

    async def wait_for(self, locator: str, timeout: float) -> bool:
        page = self._require_page(locator)
        try:
            await page.wait_for_selector(locator, timeout=timeout * 1000, state="attached")
            return True
        except PWTimeout:
            return False
        except PlaywrightError as e:
            raise ConduitError("Wait failed", details=str(e), locator=locator) from e

    async def subscribe_to_changes(
        self, scope: str, attributes: Optional[Sequence[str]] = None
    ) -> AsyncIterator[RawChangeEvent]:
        page = self._require_page(scope)
        sub_id = f"sub{next(self._sub_ids)}"
        queue: asyncio.Queue = asyncio.Queue()
        self._subscriptions[sub_id] = queue

        try:
            await page.evaluate(
                OBSERVE_SCRIPT,
                {
                    "id": sub_id,
                    "scope": scope,
                    "attributes": list(attributes or []),
                    "limit": PAYLOAD_LIMIT,
                    "binding": BINDING_NAME,
                },
            )
        except PlaywrightError as e:
            self._subscriptions.pop(sub_id, None)
            raise ConduitError("Failed to observe changes", details=str(e), locator=scope) from e

        logger.debug(f"[{self.identity.key}] Observing {scope} ({sub_id})")
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            self._subscriptions.pop(sub_id, None)
            if self._page is not None and not self._page.is_closed():
                try:
                    await self._page.evaluate(UNOBSERVE_SCRIPT, sub_id)
                except PlaywrightError as e:
                    logger.debug(f"[{self.identity.key}] Could not detach observer {sub_id}: {e}")

    async def read_text(self, locator: str, timeout: Optional[float] = None) -> Optional[str]:
        page = self._require_page(locator)
        target = page.locator(locator)
        try:
            if await target.count() == 0:
                return None
            return await target.last.text_content(timeout=(timeout or self.action_timeout) * 1000)
        except PWTimeout as e:
            raise ConduitError("Timed out reading text", details=str(e), locator=locator, error_type="timeout") from e
        except PlaywrightError as e:
            raise ConduitError("Failed to read text", details=str(e), locator=locator) from e

    async def read_attribute(self, locator: str, name: str, timeout: Optional[float] = None) -> Optional[str]:
        page = self._require_page(locator)
        target = page.locator(locator)
        try:
            if await target.count() == 0:
                return None
            return await target.last.get_attribute(name, timeout=(timeout or self.action_timeout) * 1000)
        except PWTimeout as e:
            raise ConduitError(
                "Timed out reading attribute", details=str(e), locator=locator, error_type="timeout", attribute=name
            ) from e
        except PlaywrightError as e:
            raise ConduitError("Failed to read attribute", details=str(e), locator=locator, attribute=name) from e

    async def read_attributes(self, locator: str, name: str) -> List[Optional[str]]:
        page = self._require_page(locator)
        try:
            return await page.locator(locator).evaluate_all(
                "(els, name) => els.map(el => el.getAttribute(name))", name
            )
        except PlaywrightError as e:
            raise ConduitError("Failed to read attributes", details=str(e), locator=locator, attribute=name) from e

    async def click(self, locator: str, index: Optional[int] = None) -> None:
        page = self._require_page(locator)
        target = page.locator(locator)
        target = target.nth(index) if index is not None else target.first
        try:
            await target.click()
        except PWTimeout as e:
            raise ConduitError("Timed out clicking", details=str(e), locator=locator, error_type="timeout") from e
        except PlaywrightError as e:
            raise ConduitError("Click failed", details=str(e), locator=locator, error_type="action") from e

    async def type(self, locator: str, text: str) -> None:
        page = self._require_page(locator)
        try:
            await page.locator(locator).first.press_sequentially(text, delay=20)
        except PWTimeout as e:
            raise ConduitError("Timed out typing", details=str(e), locator=locator, error_type="timeout") from e
        except PlaywrightError as e:
            raise ConduitError("Typing failed", details=str(e), locator=locator, error_type="action") from e

    async def press(self, locator: str, key: str) -> None:
        page = self._require_page(locator)
        try:
            await page.locator(locator).first.press(key)
        except PlaywrightError as e:
            raise ConduitError("Key press failed", details=str(e), locator=locator, error_type="action", key=key) from e

    async def upload_file(self, locator: str, path: str) -> None:
        page = self._require_page(locator)
        try:
            await page.locator(locator).first.set_input_files(path)
        except PlaywrightError as e:
            raise ConduitError("Upload failed", details=str(e), locator=locator, error_type="action", path=path) from e

    async def export_credential(self) -> Credential:
        page = self._require_page()
        try:
            cookies = await page.context.cookies()
            storage = await page.evaluate(LOCAL_STORAGE_DUMP)
        except PlaywrightError as e:
            raise ConduitError("Failed to export session", details=str(e)) from e
        return Credential(cookies=[dict(c) for c in cookies], local_storage=dict(storage or {}))

    async def apply_credential(self, credential: Credential) -> None:
        page = self._require_page()
        try:
            if credential.cookies:
                await page.context.add_cookies(credential.cookies)
            if credential.local_storage:
                await page.evaluate(LOCAL_STORAGE_LOAD, credential.local_storage)
            await page.reload(wait_until="domcontentloaded", timeout=self.navigation_timeout * 1000)
        except PlaywrightError as e:
            raise ConduitError("Failed to apply session", details=str(e)) from e

    async def close(self, discard_profile: bool = False) -> None:
        for queue in self._subscriptions.values():
            queue.put_nowait(None)

        context, playwright = self._context, self._playwright
        self._context = self._page = self._playwright = None
        try:
            if context is not None:
                await context.close()
        except PlaywrightError as e:
            logger.warning(f"[{self.identity.key}] Error closing browser context: {e}")
        finally:
            if playwright is not None:
                await playwright.stop()

        if discard_profile and self.profile_dir.exists():
            await asyncio.to_thread(shutil.rmtree, self.profile_dir, True)
            logger.info(f"[{self.identity.key}] Browser profile removed: {self.profile_dir}")

        logger.info(f"[{self.identity.key}] Browser resources released")
