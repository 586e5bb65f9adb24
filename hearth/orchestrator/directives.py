"""
Directive parser.

The model embeds instructions in its reply as fenced blocks:

    ```cron
    {"schedule": "0 9 * * *", "task": "standup", "message": "Remind me about standup"}
    ```

    ```memory
    User likes hiking
    ```

    ```save:hello.py
    print("hello")
    ```

parse_directives() is a pure function: a tokenizing pass splits the text
into plain-text and fenced-block tokens, recognised blocks become
directives and are removed from the visible reply, everything else is
left untouched. A malformed block is reported and dropped on its own;
it never aborts the parse.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from ..core.errors import InvalidCronExpression, MalformedDirective
from .cron import split_fields

logger = logging.getLogger(__name__)

LABEL_CRON = "cron"
LABEL_MEMORY = "memory"
LABEL_SAVE_PREFIX = "save:"

CRON_REQUIRED_FIELDS = ("schedule", "task", "message")

# A fence opens with ``` plus an optional label and a newline, and closes
# at the next ``` that starts a line. Prose may share a line with either fence.
_FENCE_RE = re.compile(
    r"```[ \t]*(?P<label>[^\n`]*?)[ \t]*\n"
    r"(?P<body>(?:.*?\n)??)"
    r"[ \t]*```",
    re.DOTALL,
)
_BLANK_RUN_RE = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")


# ── Directive variants ───────────────────────────────────────────────

@dataclass(frozen=True)
class ScheduleDirective:
    cron_expression: str
    task_description: str
    injected_prompt: str

    kind = "schedule"


@dataclass(frozen=True)
class SaveFileDirective:
    filename: str
    content: str

    kind = "save_file"


@dataclass(frozen=True)
class SaveMemoryDirective:
    text: str

    kind = "save_memory"


Directive = Union[ScheduleDirective, SaveFileDirective, SaveMemoryDirective]


@dataclass
class ParseResult:
    visible_reply: str
    directives: list[Directive] = field(default_factory=list)
    errors: list[MalformedDirective] = field(default_factory=list)


# ── Tokenizer ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Token:
    """A run of plain text (label is None) or one fenced block."""
    raw: str
    label: Optional[str] = None
    body: str = ""

    @property
    def is_block(self) -> bool:
        return self.label is not None


def tokenize(text: str) -> Iterator[Token]:
    pos = 0
    for match in _FENCE_RE.finditer(text):
        if match.start() > pos:
            yield Token(raw=text[pos:match.start()])
        body = match.group("body")
        if body.endswith("\n"):
            body = body[:-1]
        yield Token(raw=match.group(0), label=match.group("label"), body=body)
        pos = match.end()
    if pos < len(text):
        yield Token(raw=text[pos:])


def is_directive_label(label: str) -> bool:
    label = label.strip().lower()
    return label in (LABEL_CRON, LABEL_MEMORY) or label.startswith(LABEL_SAVE_PREFIX)


# ── Block payloads ───────────────────────────────────────────────────

def _parse_cron(body: str) -> ScheduleDirective:
    try:
        payload = json.loads(body.strip())
    except json.JSONDecodeError as e:
        raise MalformedDirective(LABEL_CRON, f"invalid JSON in cron block ({e.msg})", body) from e
    if not isinstance(payload, dict):
        raise MalformedDirective(LABEL_CRON, "cron block must be a JSON object", body)

    missing = [
        key for key in CRON_REQUIRED_FIELDS
        if not isinstance(payload.get(key), str) or not payload[key].strip()
    ]
    if missing:
        raise MalformedDirective(LABEL_CRON, f"missing required fields: {', '.join(missing)}", body)

    schedule = " ".join(payload["schedule"].split())
    try:
        split_fields(schedule)
    except InvalidCronExpression as e:
        raise MalformedDirective(LABEL_CRON, str(e), body) from e

    return ScheduleDirective(
        cron_expression=schedule,
        task_description=payload["task"].strip(),
        injected_prompt=payload["message"].strip(),
    )


def _parse_memory(body: str) -> SaveMemoryDirective:
    fact = body.strip()
    if not fact:
        raise MalformedDirective(LABEL_MEMORY, "empty memory block", body)
    return SaveMemoryDirective(text=fact)


def _parse_save(label: str, body: str) -> SaveFileDirective:
    filename = label[len(LABEL_SAVE_PREFIX):].strip()
    if not filename or any(ch.isspace() for ch in filename):
        raise MalformedDirective(label, "save block needs a filename like save:name.py", body)
    return SaveFileDirective(filename=filename, content=body)


def parse_block(label: str, body: str) -> Directive:
    """Turn one recognised block into a directive or raise MalformedDirective."""
    normalized = label.strip()
    lowered = normalized.lower()
    if lowered == LABEL_CRON:
        return _parse_cron(body)
    if lowered == LABEL_MEMORY:
        return _parse_memory(body)
    if lowered.startswith(LABEL_SAVE_PREFIX):
        return _parse_save(normalized, body)
    raise MalformedDirective(normalized, "unrecognised directive label", body)


# ── Public API ───────────────────────────────────────────────────────

def parse_directives(text: str) -> ParseResult:
    """Split raw model output into the visible reply and its directives."""
    # (is_kept_block, text); prose on both sides of a removed block merges
    pieces: list[list] = []
    result = ParseResult(visible_reply="")

    for token in tokenize(text or ""):
        if token.is_block and is_directive_label(token.label):
            try:
                result.directives.append(parse_block(token.label, token.body))
            except MalformedDirective as e:
                logger.warning("Dropped malformed directive: %s", e)
                result.errors.append(e)
            if pieces and not pieces[-1][0]:
                pieces[-1][1] = pieces[-1][1].rstrip(" \t")
        elif token.is_block:
            pieces.append([True, token.raw])
        elif pieces and not pieces[-1][0]:
            pieces[-1][1] += token.raw
        else:
            pieces.append([False, token.raw])

    reply = "".join(
        raw if is_block else _BLANK_RUN_RE.sub("\n\n", raw)
        for is_block, raw in pieces
    )
    result.visible_reply = reply.strip()
    return result


def extract_code_blocks(text: str) -> list[tuple[str, str]]:
    """(language, body) for every fenced block, directive or not."""
    blocks = []
    for token in tokenize(text or ""):
        if token.is_block:
            blocks.append((token.label.strip() or "text", token.body.strip()))
    return blocks
