"""Readiness detection for the clarification dialogue.

The clarifier signals that it has enough information by announcing that
it will now generate the infrastructure, but the wording varies from
reply to reply. Detection is a loose substring match against a phrase
table from config.yaml. A miss just costs one more clarifying turn; a
false hit starts a pipeline the client can re-run.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

logger = logging.getLogger(__name__)


class ReadinessClassifier:
    """Matches replies against a ``{pattern: meaning}`` phrase table."""

    def __init__(self, phrases: Mapping[str, str]) -> None:
        self.phrases = {pattern.lower(): meaning for pattern, meaning in phrases.items()}

    def match(self, reply: str) -> str | None:
        """Return the first pattern found in ``reply``, or None."""
        lowered = reply.lower()
        for pattern in self.phrases:
            if pattern in lowered:
                return pattern
        return None

    def is_ready(self, reply: str) -> bool:
        pattern = self.match(reply)
        if pattern is not None:
            logger.info(f"Readiness detected: '{pattern}' ({self.phrases[pattern]})")
        return pattern is not None
