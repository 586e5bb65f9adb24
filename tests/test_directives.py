from hearth.core.errors import MalformedDirective
from hearth.orchestrator.directives import (
    SaveFileDirective,
    SaveMemoryDirective,
    ScheduleDirective,
    extract_code_blocks,
    parse_block,
    parse_directives,
    tokenize,
)

CRON_BLOCK = (
    '```cron\n'
    '{"schedule": "*/5 * * * *", "task": "stretch", "message": "Remind me to stretch"}\n'
    '```'
)


def test_plain_text_passes_through():
    result = parse_directives("Hello there!\nHow are you?")
    assert result.visible_reply == "Hello there!\nHow are you?"
    assert result.directives == []
    assert result.errors == []


def test_empty_and_none_text():
    assert parse_directives("").visible_reply == ""
    assert parse_directives(None).directives == []


def test_cron_block_with_trailing_prose():
    text = CRON_BLOCK + "\nI'll remind you every five minutes."
    result = parse_directives(text)

    assert result.directives == [
        ScheduleDirective(
            cron_expression="*/5 * * * *",
            task_description="stretch",
            injected_prompt="Remind me to stretch",
        )
    ]
    assert result.visible_reply == "I'll remind you every five minutes."


def test_visible_reply_has_no_directives_left():
    text = (
        "Sure thing.\n\n"
        + CRON_BLOCK
        + "\n\n```memory\nUser likes tea\n```\n\n"
        "```save:notes.md\n# Notes\n```\nDone."
    )
    result = parse_directives(text)
    assert len(result.directives) == 3
    assert parse_directives(result.visible_reply).directives == []


def test_prose_on_both_sides_is_joined():
    text = "Before.\n\n```memory\nUser is Sam\n```\n\nAfter."
    result = parse_directives(text)
    assert result.visible_reply == "Before.\n\nAfter."
    assert result.directives == [SaveMemoryDirective(text="User is Sam")]


def test_directives_keep_their_order():
    text = (
        "```memory\nfirst\n```\n"
        "```save:a.txt\nA\n```\n"
        "```memory\nsecond\n```"
    )
    kinds = [d.kind for d in parse_directives(text).directives]
    assert kinds == ["save_memory", "save_file", "save_memory"]


def test_ordinary_code_block_is_kept_verbatim():
    code = "```python\ndef f():\n\n\n    return 1\n```"
    text = f"Here you go:\n\n{code}\n\nEnjoy."
    result = parse_directives(text)
    assert result.directives == []
    assert code in result.visible_reply


def test_malformed_cron_and_valid_memory():
    text = (
        "```cron\n{not json}\n```\n"
        "```memory\nUser's cat is called Miso\n```\n"
        "Noted!"
    )
    result = parse_directives(text)

    assert [d for d in result.directives if isinstance(d, ScheduleDirective)] == []
    assert result.directives == [SaveMemoryDirective(text="User's cat is called Miso")]
    assert len(result.errors) == 1
    assert result.errors[0].label == "cron"
    assert result.visible_reply == "Noted!"


def test_cron_block_missing_fields():
    result = parse_directives('```cron\n{"schedule": "0 9 * * *", "task": "x"}\n```')
    assert result.directives == []
    assert "message" in result.errors[0].reason


def test_cron_block_with_wrong_field_count():
    result = parse_directives(
        '```cron\n{"schedule": "0 9 * *", "task": "x", "message": "y"}\n```'
    )
    assert result.directives == []
    assert "5 fields" in result.errors[0].reason


def test_cron_block_must_be_object():
    result = parse_directives('```cron\n["0 9 * * *"]\n```')
    assert result.directives == []
    assert len(result.errors) == 1


def test_cron_schedule_whitespace_is_normalised():
    block = parse_block(
        "cron", '{"schedule": " 0   9 * *  1 ", "task": "t", "message": "m"}'
    )
    assert block.cron_expression == "0 9 * * 1"


def test_save_block_keeps_content():
    result = parse_directives("```save:hello.py\nprint('hi')\n\n\nprint('bye')\n```")
    assert result.directives == [
        SaveFileDirective(filename="hello.py", content="print('hi')\n\n\nprint('bye')")
    ]
    assert result.visible_reply == ""


def test_save_block_without_filename():
    result = parse_directives("```save:\nbody\n```")
    assert result.directives == []
    assert len(result.errors) == 1


def test_empty_memory_block_is_malformed():
    result = parse_directives("```memory\n   \n```\nok")
    assert result.directives == []
    assert isinstance(result.errors[0], MalformedDirective)
    assert result.visible_reply == "ok"


def test_labels_are_case_insensitive():
    result = parse_directives("```Memory\nLikes jazz\n```")
    assert result.directives == [SaveMemoryDirective(text="Likes jazz")]


def test_cron_fence_opening_after_prose():
    text = (
        'Sure, I will. ```cron\n'
        '{"schedule": "0 9 * * *", "task": "standup", "message": "Remind me about standup"}\n'
        '```\nSee you at nine.'
    )
    result = parse_directives(text)
    assert result.directives == [
        ScheduleDirective(
            cron_expression="0 9 * * *",
            task_description="standup",
            injected_prompt="Remind me about standup",
        )
    ]
    assert result.visible_reply == "Sure, I will.\nSee you at nine."


def test_prose_after_closing_fence():
    result = parse_directives("```memory\nUser likes hiking\n``` Noted!")
    assert result.directives == [SaveMemoryDirective(text="User likes hiking")]
    assert result.visible_reply == "Noted!"


def test_inline_block_between_prose():
    result = parse_directives("Okay ```memory\nUser is Sam\n``` got it.")
    assert result.directives == [SaveMemoryDirective(text="User is Sam")]
    assert result.visible_reply == "Okay got it."


def test_empty_block_closes_at_its_own_fence():
    result = parse_directives("```memory\n```\n```save:a.txt\nA\n```")
    assert result.directives == [SaveFileDirective(filename="a.txt", content="A")]
    assert [e.label for e in result.errors] == ["memory"]


def test_unclosed_fence_is_plain_text():
    text = "Start\n```memory\nnever closed"
    result = parse_directives(text)
    assert result.directives == []
    assert result.visible_reply == text


def test_parse_is_idempotent():
    text = "Hi\n\n" + CRON_BLOCK + "\n\nBye\n\n```js\nx()\n```"
    once = parse_directives(text).visible_reply
    assert parse_directives(once).visible_reply == once


def test_tokenize_covers_whole_text():
    text = "a\n```memory\nb\n```\nc"
    assert "".join(t.raw for t in tokenize(text)) == text


def test_extract_code_blocks():
    text = "x\n```python\nprint(1)\n```\ny\n```\nplain\n```"
    assert extract_code_blocks(text) == [("python", "print(1)"), ("text", "plain")]
