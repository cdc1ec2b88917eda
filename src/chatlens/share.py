"""ChatGPT share pages.

Loading and rendering a share page is done by an external collaborator
(a headless browser). This module only handles what comes back: it reads
role-tagged message candidates out of the rendered HTML and turns the
usable ones into a conversation.
"""

import logging
import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from .core import ROLES, Message, ParsedConversation, new_conversation_id, utc_now
from .errors import ExtractionFailed

logger = logging.getLogger(__name__)

DEFAULT_SHARE_TITLE = "Imported Conversation"

SHARE_URL_PATTERN = re.compile(r"^https?://(chat\.openai\.com|chatgpt\.com)/share/[\w-]+$")

ROLE_ATTRIBUTE = "data-message-author-role"
CONTENT_SELECTOR = ".markdown, .whitespace-pre-wrap"


@dataclass
class ShareCandidate:
    """A message as scraped from the page, before validation."""

    role: str
    content: str


@dataclass
class SharePage:
    title: str = ""
    candidates: list[ShareCandidate] = field(default_factory=list)


def is_share_url(url: str) -> bool:
    return bool(SHARE_URL_PATTERN.match(url.strip()))


def extract_share_page(html: str) -> SharePage:
    """Collect message candidates and a title from rendered share-page HTML."""
    soup = BeautifulSoup(html, "html.parser")

    candidates = []
    for el in soup.find_all(attrs={ROLE_ATTRIBUTE: True}):
        content_el = el.select_one(CONTENT_SELECTOR)
        content = content_el.get_text().strip() if content_el else ""
        candidates.append(ShareCandidate(role=el.get(ROLE_ATTRIBUTE, ""), content=content))

    title_el = soup.find(["h1", "title"])
    title = title_el.get_text().strip() if title_el else ""

    logger.debug("Found %d message candidates on share page", len(candidates))
    return SharePage(title=title, candidates=candidates)


def build_shared_conversation(page: SharePage) -> ParsedConversation:
    """Validate scraped candidates and build a conversation from them.

    Only candidates whose role is exactly ``user`` or ``assistant`` and whose
    content is non-blank are kept. Raises ExtractionFailed if none are.
    """
    messages = []
    for candidate in page.candidates:
        if candidate.role not in ROLES:
            continue
        content = candidate.content.strip()
        if not content:
            continue
        messages.append(Message(role=candidate.role, content=content))

    dropped = len(page.candidates) - len(messages)
    if dropped:
        logger.debug("Discarded %d unusable share-page candidates", dropped)

    if not messages:
        raise ExtractionFailed(
            "Could not extract conversation from share page. "
            "The page may require authentication or use a different format."
        )

    return ParsedConversation(
        id=new_conversation_id(),
        title=page.title.strip() or DEFAULT_SHARE_TITLE,
        messages=messages,
        created_at=utc_now(),
    )


def parse_share_html(html: str) -> ParsedConversation:
    """Extract and validate a conversation from rendered share-page HTML."""
    return build_shared_conversation(extract_share_page(html))
