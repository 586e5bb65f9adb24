import pytest

from hearth.core.errors import BackendUnavailable
from hearth.models.memory import MemoryFact
from hearth.orchestrator.commands import get_command, get_commands, parse_command


@pytest.mark.parametrize(
    "text, expected",
    [
        ("/status", ("status", "")),
        ("  /Jobs  ", ("jobs", "")),
        ("/status@hearth_bot", ("status", "")),
        ("/schedule */5 * * * * Tell me a joke", ("schedule", "*/5 * * * * Tell me a joke")),
        ("hello", None),
        ("/", None),
        ("/123", None),
    ],
)
def test_parse_command(text, expected):
    assert parse_command(text) == expected


def test_command_surface():
    names = {c.name for c in get_commands()}
    assert {
        "start", "help", "status", "jobs", "schedule", "cancel",
        "workspace", "save", "memory", "remember", "forget", "clear",
    } <= names
    assert get_command("STATUS") is get_command("status")


class TestRouter:
    async def test_command_does_not_call_model(self, runtime, backend):
        reply = await runtime.router.respond("alice", "/status")
        assert reply.is_command
        assert "Model: test-model" in reply.content
        assert backend.calls == []

    async def test_plain_text_is_a_turn(self, runtime, backend):
        reply = await runtime.router.respond("alice", "hello")
        assert not reply.is_command
        assert reply.content == "echo: hello"
        assert len(backend.calls) == 1

    async def test_unknown_command_goes_to_model(self, runtime, backend):
        reply = await runtime.router.respond("alice", "/dance please")
        assert not reply.is_command
        assert reply.content == "echo: /dance please"

    async def test_backend_failure_becomes_reply(self, runtime, backend):
        backend.queue(BackendUnavailable("connection refused"))
        reply = await runtime.router.respond("alice", "hello")
        assert reply.failed
        assert reply.content == "Sorry, I had trouble thinking about that. Error: connection refused"

    async def test_unencodable_save_does_not_escape(self, runtime, backend):
        backend.queue("```save:a.txt\n\ud800\n```\nSaved.")
        reply = await runtime.router.respond("alice", "save it")
        assert not reply.failed
        assert reply.content == "Saved."
        assert any(n.startswith("❌ Error saving file") for n in reply.notes)

    async def test_unexpected_error_becomes_reply(self, runtime, backend):
        backend.queue(RuntimeError("boom"))
        reply = await runtime.router.respond("alice", "hello")
        assert reply.failed
        assert reply.content == "Something went wrong on my end. Please try again."

    async def test_empty_message_rejected(self, runtime, backend):
        reply = await runtime.router.respond("alice", "   ")
        assert reply.failed
        assert backend.calls == []

    async def test_help_lists_commands(self, runtime):
        reply = await runtime.router.respond("alice", "/help")
        assert "/schedule <cron> <prompt>" in reply.content
        assert "/cancel <id>" in reply.content


class TestJobCommands:
    async def test_schedule_and_list(self, runtime):
        reply = await runtime.router.respond("alice", "/schedule */3 * * * * Tell me a joke")
        assert reply.content.startswith("✅ Scheduled job #")

        jobs = await runtime.store.list_active_jobs("alice")
        assert len(jobs) == 1
        assert jobs[0].cron_expression == "*/3 * * * *"
        assert jobs[0].injected_prompt == "Tell me a joke"

        listing = (await runtime.router.respond("alice", "/jobs")).content
        assert f"#{jobs[0].id} — Tell me a joke" in listing

    async def test_long_prompt_title_is_truncated(self, runtime):
        prompt = "word " * 20
        await runtime.router.respond("alice", f"/schedule 0 9 * * * {prompt}")
        (job,) = await runtime.store.list_active_jobs("alice")
        assert len(job.task_description) == 50
        assert job.task_description.endswith("...")
        assert job.injected_prompt == prompt.strip()

    async def test_schedule_usage(self, runtime):
        reply = await runtime.router.respond("alice", "/schedule 0 9 * * *")
        assert reply.content.startswith("Usage: /schedule")

    async def test_schedule_invalid_cron(self, runtime):
        reply = await runtime.router.respond("alice", "/schedule 0 99 * * * hi")
        assert reply.content.startswith("❌ Invalid cron expression")
        assert await runtime.store.list_active_jobs("alice") == []

    async def test_cancel(self, runtime):
        await runtime.router.respond("alice", "/schedule 0 9 * * * standup")
        (job,) = await runtime.store.list_active_jobs("alice")

        # Another user cannot cancel it
        reply = await runtime.router.respond("bob", f"/cancel {job.id}")
        assert reply.content == f"Job #{job.id} not found."

        reply = await runtime.router.respond("alice", f"/cancel {job.id}")
        assert reply.content == f"✅ Cancelled job #{job.id}"
        assert await runtime.store.list_active_jobs("alice") == []

    async def test_cancel_unknown_and_bad_id(self, runtime):
        assert (await runtime.router.respond("alice", "/cancel 999")).content == "Job #999 not found."
        assert (await runtime.router.respond("alice", "/cancel abc")).content == "Usage: /cancel <job_id>"

    async def test_no_jobs(self, runtime):
        reply = await runtime.router.respond("alice", "/jobs")
        assert reply.content.startswith("No scheduled jobs")


class TestMemoryCommands:
    async def test_memory_listing_and_forget(self, runtime):
        assert "No memories saved yet" in (await runtime.router.respond("alice", "/memory")).content

        await runtime.store.save_memory(MemoryFact(user_id="alice", text="likes tea"))
        listing = (await runtime.router.respond("alice", "/memory")).content
        assert "- likes tea" in listing

        reply = await runtime.router.respond("alice", "/forget")
        assert "(1 removed)" in reply.content
        assert await runtime.store.list_memories("alice") == []

    async def test_remember_is_explicit(self, runtime, backend):
        reply = await runtime.router.respond("alice", "/remember I am vegetarian")
        assert reply.content == "🧠 Remembered: I am vegetarian"
        (fact,) = await runtime.store.list_memories("alice")
        assert fact.source == "explicit"
        assert backend.calls == []

    async def test_memory_warns_when_large(self, runtime):
        runtime.settings.memory_warn_lines = 2
        for i in range(3):
            await runtime.store.save_memory(MemoryFact(user_id="alice", text=f"fact {i}"))
        listing = (await runtime.router.respond("alice", "/memory")).content
        assert "⚠️ Memory is getting large!" in listing


class TestWorkspaceCommands:
    async def test_save_last_code_block(self, runtime, backend):
        backend.queue("Here:\n```python\nprint('hi')\n```")
        await runtime.router.respond("alice", "write hello world")

        reply = await runtime.router.respond("alice", "/save hello.py")
        assert reply.content == "💾 Saved hello.py to workspace"
        assert runtime.workspace.read_file("hello.py") == "print('hi')"

        listing = (await runtime.router.respond("alice", "/workspace")).content
        assert "hello.py" in listing

    async def test_save_without_code(self, runtime):
        await runtime.router.respond("alice", "hi")
        reply = await runtime.router.respond("alice", "/save out.py")
        assert reply.content == "❌ No code blocks found in recent conversation."

    async def test_save_usage(self, runtime):
        assert (await runtime.router.respond("alice", "/save")).content.startswith("Usage: /save")

    async def test_empty_workspace(self, runtime):
        assert (await runtime.router.respond("alice", "/workspace")).content.startswith("Workspace is empty")


async def test_clear_command(runtime):
    await runtime.router.respond("alice", "hello")
    reply = await runtime.router.respond("alice", "/clear")
    assert reply.content == "🧹 Conversation history cleared."
    assert await runtime.store.load_recent_turns("alice", 10) == []
