"""
Guardrails — input validation before a message reaches the engine.

  1. Length check
  2. Empty message
  3. Injection patterns (logged, not blocked)
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 10000

_INJECTION_PATTERNS = [
    r"ignore\s+(all\s+)?previous\s+instructions",
    r"ignore\s+(all\s+)?above",
    r"disregard\s+(all\s+)?previous",
    r"<\s*system\s*>",
]


@dataclass
class GuardrailResult:
    """Result of a guardrail check."""
    allowed: bool
    reason: Optional[str] = None


def check_input(message: str, user_id: str = "") -> GuardrailResult:
    """Returns allowed=False with a user-facing reason if the message is rejected."""
    if len(message) > MAX_MESSAGE_LENGTH:
        return GuardrailResult(
            allowed=False,
            reason=f"Message too long ({len(message)} chars). Maximum is {MAX_MESSAGE_LENGTH}.",
        )

    if not message.strip():
        return GuardrailResult(allowed=False, reason="Message is empty.")

    msg_lower = message.lower()
    for pattern in _INJECTION_PATTERNS:
        if re.search(pattern, msg_lower):
            # Logged only: the system prompt handles it
            logger.warning("Potential injection detected from user=%s: %s", user_id, message[:100])
            break

    return GuardrailResult(allowed=True)
