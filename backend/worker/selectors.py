"""
relaybot Selectors - locators and markers for WhatsApp Web

Grouped in one dataclass so a worker can be pointed at a different UI
language or markup without touching the lifecycle or pipeline code.
"""

from dataclasses import dataclass
from typing import Tuple

WHATSAPP_WEB_URL = "https://web.whatsapp.com"


@dataclass(frozen=True)
class Selectors:
    """Locators (CSS) and text markers used by one worker."""

    url: str = WHATSAPP_WEB_URL

    # Session
    ready: str = "#pane-side"
    qr_code: str = "div[data-ref]"
    qr_attribute: str = "data-ref"
    disconnect_scope: str = "body"
    disconnect_markers: Tuple[str, ...] = ("Desconectando", "Disconnecting")

    # Incoming messages
    chat_list: str = 'div[aria-label="Lista de conversas"]'
    # the last match is the newest incoming row; its text is read inside it
    incoming_row: str = "div[data-id]:has(.message-in)"
    incoming_id_attribute: str = "data-id"
    incoming_text: str = ".message-in .copyable-text"
    message_markers: Tuple[str, ...] = ("aria-label=", "message-in", "copyable-text", "unread")

    # Outbound
    compose_box: str = 'footer div[contenteditable="true"]'
    new_chat_button: str = 'div[title="Nova conversa"]'
    search_box: str = 'div[contenteditable="true"][data-tab="3"]'
    search_results: str = 'div[role="button"] span[title]'
    attach_button: str = 'div[title="Anexar"]'
    file_input: str = 'input[type="file"]'
    media_caption: str = 'div[aria-label="Adicione uma legenda"]'
    media_send: str = 'span[data-icon="send"]'

    def is_disconnect_payload(self, text: str | None) -> bool:
        return bool(text) and any(marker in text for marker in self.disconnect_markers)

    def is_message_payload(self, text: str | None) -> bool:
        return bool(text) and any(marker in text for marker in self.message_markers)

    def message_text(self, data_id: str) -> str:
        """Text locator scoped to the row with this data-id."""
        return f'div[data-id="{data_id}"] {self.incoming_text}'


DEFAULT_SELECTORS = Selectors()
