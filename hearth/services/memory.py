"""
Cross-session user memory — format persistent user facts for the prompt.

Used by the engine to inject user context into every turn, and by the
/memory command to show what the assistant knows.
"""

from typing import Sequence

from ..models.memory import MemoryFact


def format_memories_for_prompt(memories: Sequence[MemoryFact]) -> str:
    """Format memories as a system prompt section."""
    if not memories:
        return ""

    lines = [f"- {m.text}" for m in memories]
    return (
        "## Personal Memory\n"
        "These are important facts to remember about the user:\n"
        + "\n".join(lines)
    )


def format_memories_for_listing(memories: Sequence[MemoryFact]) -> str:
    return "\n".join(f"- {m.text}" for m in memories)


def memory_line_count(memories: Sequence[MemoryFact]) -> int:
    return sum(max(1, len(m.text.splitlines())) for m in memories)
