"""
Slash-command registry.

Every front-end exposes the same command surface. Each command maps
onto store or engine operations; none of them calls the model.

Register with the @command decorator. Handlers receive the runtime,
the user id and the raw argument string, and return the reply text.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..core.errors import InvalidCronExpression
from ..models.memory import SOURCE_EXPLICIT, MemoryFact
from ..services.memory import format_memories_for_listing, memory_line_count
from .cron import CRON_FIELDS
from .directives import extract_code_blocks

if TYPE_CHECKING:
    from ..runtime import Runtime

logger = logging.getLogger(__name__)

CommandHandler = Callable[["Runtime", str, str], Awaitable[str]]

SAVE_SEARCH_TURNS = 10
TASK_TITLE_LIMIT = 50


@dataclass
class Command:
    name: str
    description: str
    usage: str
    handler: CommandHandler


_commands: dict[str, Command] = {}


def command(name: str, description: str, usage: str = ""):
    """Decorator to register a slash command."""

    def decorator(func: CommandHandler) -> CommandHandler:
        _commands[name] = Command(
            name=name,
            description=description,
            usage=usage or f"/{name}",
            handler=func,
        )
        logger.debug("Registered command: /%s", name)
        return func

    return decorator


def get_command(name: str) -> Optional[Command]:
    return _commands.get(name.lower())


def get_commands() -> list[Command]:
    return list(_commands.values())


def parse_command(text: str) -> Optional[tuple[str, str]]:
    """'/schedule */5 * * * * hi' → ('schedule', '*/5 * * * * hi'). None if not a command."""
    stripped = text.strip()
    if not stripped.startswith("/") or len(stripped) < 2:
        return None
    head, _, args = stripped[1:].partition(" ")
    # Chat transports append the bot name: /status@hearth_bot
    name = head.split("@", 1)[0].lower()
    if not name.isidentifier():
        return None
    return name, args.strip()


# ── Commands ─────────────────────────────────────────────────────────

@command("start", "Welcome message")
async def start(runtime: "Runtime", user_id: str, args: str) -> str:
    return (
        "🏠 Hearth is online!\n\n"
        "I'm your local AI assistant.\n\n"
        "Just send me a message to chat, or use:\n"
        "/status — System status\n"
        "/jobs — List scheduled tasks\n"
        "/schedule — Create a cron job\n"
        "/workspace — List generated files\n"
        "/clear — Clear conversation history\n"
        "/help — Show all commands"
    )


@command("help", "Show commands")
async def help_(runtime: "Runtime", user_id: str, args: str) -> str:
    lines = ["🏠 Hearth Commands\n"]
    for cmd in get_commands():
        lines.append(f"{cmd.usage} — {cmd.description}")
    return "\n".join(lines)


@command("status", "Show system status")
async def status(runtime: "Runtime", user_id: str, args: str) -> str:
    settings = runtime.settings
    jobs = await runtime.store.list_active_jobs(user_id)
    memories = await runtime.store.list_memories(user_id)
    files = runtime.workspace.list_files()
    return (
        "🏠 Hearth Status\n\n"
        f"Model: {settings.ollama_model}\n"
        f"Host: {settings.ollama_host}\n"
        f"Context: {settings.ollama_context_length} tokens\n"
        f"Scheduled jobs: {len(jobs)}\n"
        f"Memories: {len(memories)}\n"
        f"Workspace files: {len(files)}"
    )


@command("jobs", "List scheduled tasks")
async def jobs(runtime: "Runtime", user_id: str, args: str) -> str:
    active = await runtime.store.list_active_jobs(user_id)
    if not active:
        return "No scheduled jobs. Ask me to schedule something!"
    lines = ["🕐 Scheduled Jobs\n"]
    for job in active:
        nxt = job.next_fire_at.strftime("%Y-%m-%d %H:%M UTC") if job.next_fire_at else "—"
        lines.append(f"#{job.id} — {job.task_description}\n  Schedule: {job.cron_expression}\n  Next: {nxt}")
    return "\n".join(lines)


@command("schedule", "Create a cron job", "/schedule <cron> <prompt>")
async def schedule(runtime: "Runtime", user_id: str, args: str) -> str:
    parts = args.split()
    n = len(CRON_FIELDS)
    if len(parts) <= n:
        return (
            "Usage: /schedule <cron> <prompt>\n\n"
            "The prompt will be sent to me when the job triggers.\n\n"
            "Cron format: minute hour day month weekday\n\n"
            "Examples:\n"
            "/schedule */3 * * * * Tell me a joke\n"
            "/schedule 0 9 * * * Give me a motivational quote"
        )

    expression = " ".join(parts[:n])
    prompt = " ".join(parts[n:])
    task = prompt if len(prompt) <= TASK_TITLE_LIMIT else prompt[:TASK_TITLE_LIMIT - 3] + "..."
    try:
        job = await runtime.engine.schedule_job(user_id, expression, task, prompt)
    except InvalidCronExpression as e:
        return f"❌ {e}"
    return (
        f"✅ Scheduled job #{job.id}: {task}\n"
        f"Schedule: {expression}\n"
        f"Message: {prompt}"
    )


@command("cancel", "Cancel a scheduled task", "/cancel <id>")
async def cancel(runtime: "Runtime", user_id: str, args: str) -> str:
    token = args.strip().lstrip("#")
    if not token.isdigit():
        return "Usage: /cancel <job_id>"
    job_id = int(token)

    job = await runtime.store.get_job(job_id)
    if job is None or job.user_id != user_id:
        return f"Job #{job_id} not found."
    await runtime.store.deactivate_job(job_id)
    return f"✅ Cancelled job #{job_id}"


@command("workspace", "List generated files")
async def workspace(runtime: "Runtime", user_id: str, args: str) -> str:
    files = runtime.workspace.list_files()
    if not files:
        return "Workspace is empty. Ask me to write some code!"
    lines = ["📁 Workspace Files\n"]
    for f in files:
        lines.append(f"{f.name} ({f.size / 1024:.1f} KB)")
    return "\n".join(lines)


@command("save", "Save last code block", "/save <filename>")
async def save(runtime: "Runtime", user_id: str, args: str) -> str:
    filename = args.strip().split(" ", 1)[0] if args.strip() else ""
    if not filename:
        return "Usage: /save filename.py\n\nThis will save the last code block from my response."

    recent = await runtime.store.load_recent_turns(user_id, SAVE_SEARCH_TURNS)
    for turn in reversed(recent):
        if turn.role != "assistant":
            continue
        blocks = extract_code_blocks(turn.text)
        if blocks:
            try:
                path = await runtime.workspace.write_file(filename, blocks[0][1])
            except (OSError, UnicodeError) as e:
                return f"❌ Error saving file: {e}"
            return f"💾 Saved {path.name} to workspace"
    return "❌ No code blocks found in recent conversation."


@command("memory", "View saved memories")
async def memory(runtime: "Runtime", user_id: str, args: str) -> str:
    memories = await runtime.store.list_memories(user_id)
    if not memories:
        return "🧠 My Memory\n\nNo memories saved yet. Tell me something about yourself!"
    lines = memory_line_count(memories)
    header = f"🧠 My Memory ({lines} lines)\n\n"
    if lines > runtime.settings.memory_warn_lines:
        header += "⚠️ Memory is getting large!\n\n"
    return header + format_memories_for_listing(memories)


@command("remember", "Save a memory", "/remember <fact>")
async def remember(runtime: "Runtime", user_id: str, args: str) -> str:
    fact = args.strip()
    if not fact:
        return "Usage: /remember <fact>"
    await runtime.store.save_memory(MemoryFact(user_id=user_id, text=fact, source=SOURCE_EXPLICIT))
    return f"🧠 Remembered: {fact}"


@command("forget", "Clear all memories")
async def forget(runtime: "Runtime", user_id: str, args: str) -> str:
    count = await runtime.store.clear_memories(user_id)
    return f"🧹 All memories have been forgotten ({count} removed)."


@command("clear", "Clear chat history")
async def clear(runtime: "Runtime", user_id: str, args: str) -> str:
    await runtime.engine.clear_history(user_id)
    return "🧹 Conversation history cleared."
