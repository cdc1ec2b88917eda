"""Recover a conversation analysis from free-form model output.

Models asked for "JSON only" still wrap replies in markdown fences or add
a sentence of prose. Each strategy below takes the raw reply and returns
the decoded value or None; they are tried in order and the first success
wins.
"""

import json
import logging
import re
from typing import Any, Callable, Optional

from .core import ConversationAnalysis
from .errors import SchemaExtractionFailed

logger = logging.getLogger(__name__)

FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
ANALYSIS_SPAN = re.compile(r'\{[\s\S]*"topics"[\s\S]*"summary"[\s\S]*\}')


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def parse_direct(text: str) -> Any:
    """The whole reply, trimmed."""
    return _loads(text.strip())


def parse_fenced_block(text: str) -> Any:
    """The first ``` or ```json fenced block."""
    match = FENCED_BLOCK.search(text)
    if not match:
        return None
    return _loads(match.group(1).strip())


def parse_balanced_span(text: str) -> Any:
    """From the first '{' to the last '}', provided "topics" and "summary" lie between."""
    match = ANALYSIS_SPAN.search(text)
    if not match:
        return None
    return _loads(match.group(0))


def parse_bracket_span(text: str) -> Any:
    """From the first '{' to the last '}' of the whole reply."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return _loads(text[start:end + 1])


STRATEGIES: list[Callable[[str], Any]] = [
    parse_direct,
    parse_fenced_block,
    parse_balanced_span,
    parse_bracket_span,
]


def extract_json(text: str) -> Any:
    """Run the recovery cascade over ``text``.

    Raises SchemaExtractionFailed, carrying the first 200 characters of the
    reply, if no strategy produces JSON.
    """
    for strategy in STRATEGIES:
        value = strategy(text)
        # a decoded JSON null counts as a miss
        if value is not None:
            logger.debug("Recovered JSON via %s", strategy.__name__)
            return value
        logger.debug("%s found no JSON", strategy.__name__)

    logger.warning("No JSON found in %d-character model reply", len(text))
    raise SchemaExtractionFailed(text)


def parse_analysis(text: str, message_count: Optional[int] = None) -> ConversationAnalysis:
    """Extract JSON from a model reply and validate it as an analysis.

    Raises SchemaExtractionFailed or SchemaInvalid.
    """
    return ConversationAnalysis.from_dict(extract_json(text), message_count=message_count)
