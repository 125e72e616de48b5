"""Session summaries for cross-session continuation.

`latest.json` is overwritten on every save; each save also writes a new
archive record under `archive/` that is never overwritten.
"""

import json
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from x_code.config import PROJECT_DIR_NAME
from x_code.llm import Message, ModelClient, render_transcript
from x_code.logging import get_logger

log = get_logger(__name__)

SESSIONS_DIR = "sessions"
ARCHIVE_DIR = "archive"
LATEST_FILENAME = "latest.json"
SUMMARY_WINDOW = 20

SessionStatus = Literal["completed", "in_progress", "abandoned"]

SUMMARY_INSTRUCTION = """Summarize this conversation as a structured JSON object with these fields:
- title: short descriptive title (string)
- summary: 2-3 sentence overview (string)
- key_results: what was accomplished (string[])
- pending_work: what remains to be done (string[])
- decisions: important decisions made (string[])
- status: "completed" | "in_progress" | "abandoned"

Return ONLY valid JSON, no markdown fencing."""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


class SessionSummary(BaseModel):
    """Structured summary of one finished (or interrupted) session."""

    id: str
    title: str = "Untitled session"
    summary: str = ""
    key_results: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("key_results", "keyResults")
    )
    pending_work: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("pending_work", "pendingWork")
    )
    decisions: list[str] = Field(default_factory=list)
    files_modified: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("files_modified", "filesModified")
    )
    started_at: str = Field(
        default_factory=_utcnow_iso, validation_alias=AliasChoices("started_at", "startedAt")
    )
    ended_at: str = Field(
        default_factory=_utcnow_iso, validation_alias=AliasChoices("ended_at", "endedAt")
    )
    status: SessionStatus = "completed"

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        if value in ("completed", "in_progress", "abandoned"):
            return value
        return "completed"

    @field_validator("key_results", "pending_work", "decisions", "files_modified", mode="before")
    @classmethod
    def _coerce_list(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class SessionStore:
    """Session files under `<project>/.x-code/sessions/`."""

    def __init__(self, project_root: Path | str):
        self.directory = Path(project_root) / PROJECT_DIR_NAME / SESSIONS_DIR
        self.archive_dir = self.directory / ARCHIVE_DIR

    @property
    def latest_path(self) -> Path:
        return self.directory / LATEST_FILENAME

    def load_latest(self) -> SessionSummary | None:
        """Return the latest summary, or None if missing or unreadable."""
        try:
            raw = self.latest_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            log.warning("Failed to read latest session", path=str(self.latest_path), error=str(e))
            return None
        try:
            return SessionSummary.model_validate_json(raw)
        except ValidationError as e:
            log.warning("Ignoring malformed latest session", error=str(e))
            return None

    def _archive_path(self, summary: SessionSummary) -> Path:
        compact = re.sub(r"[^0-9T]", "", summary.ended_at.split("+")[0])[:15] or "unknown"
        candidate = self.archive_dir / f"{compact}-{summary.id}.json"
        counter = 1
        while candidate.exists():
            candidate = self.archive_dir / f"{compact}-{summary.id}-{counter}.json"
            counter += 1
        return candidate

    def save(self, summary: SessionSummary) -> Path:
        """Overwrite latest.json and append an archive record. Returns the archive path."""
        self.archive_dir.mkdir(parents=True, exist_ok=True)
        payload = summary.model_dump_json(indent=2)
        self.latest_path.write_text(payload, encoding="utf-8")
        archive_path = self._archive_path(summary)
        archive_path.write_text(payload, encoding="utf-8")
        log.info("Session saved", session_id=summary.id, archive=archive_path.name)
        return archive_path

    def list_archive(self, session_id: str | None = None) -> list[SessionSummary]:
        """Archived summaries sorted by file name, optionally filtered by session id."""
        if not self.archive_dir.is_dir():
            return []
        records: list[SessionSummary] = []
        for path in sorted(self.archive_dir.glob("*.json")):
            try:
                record = SessionSummary.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                log.warning("Skipping unreadable archive record", path=str(path), error=str(e))
                continue
            if session_id is None or record.id == session_id:
                records.append(record)
        return records


def _degraded_summary(
    text: str,
    session_id: str,
    started_at: str,
    files_modified: list[str],
) -> SessionSummary:
    return SessionSummary(
        id=session_id,
        title="Session",
        summary=text[:200],
        files_modified=files_modified,
        started_at=started_at,
        ended_at=_utcnow_iso(),
        status="completed",
    )


async def generate_summary(
    messages: list[Message],
    client: ModelClient,
    model_id: str,
    session_id: str,
    started_at: str,
    files_modified: list[str] | set[str],
) -> SessionSummary:
    """Ask the model for a structured summary of the last messages.

    Never raises: a model or parse failure yields a degraded summary built
    from the raw (truncated) text.
    """
    files = sorted(files_modified)
    recent = messages[-SUMMARY_WINDOW:]
    try:
        text = await client.summarize(model_id, recent, SUMMARY_INSTRUCTION)
    except Exception as e:
        log.warning("Session summary call failed", error=str(e))
        return _degraded_summary(render_transcript(recent), session_id, started_at, files)

    try:
        parsed = json.loads(_FENCE_RE.sub("", text.strip()))
        if not isinstance(parsed, dict):
            raise ValueError("summary is not a JSON object")
        parsed.update(
            id=session_id,
            started_at=started_at,
            ended_at=_utcnow_iso(),
            files_modified=files,
        )
        for camel in ("startedAt", "endedAt", "filesModified"):
            parsed.pop(camel, None)
        return SessionSummary.model_validate(parsed)
    except (ValueError, ValidationError) as e:
        log.warning("Session summary was not valid JSON", error=str(e))
        return _degraded_summary(text, session_id, started_at, files)


def format_for_prompt(summary: SessionSummary) -> str:
    """Render a summary as the previous-session block of the knowledge context."""
    lines = [
        "### Previous Session",
        f"Title: {summary.title}",
        f"Status: {summary.status}",
        f"Summary: {summary.summary}",
    ]
    for heading, items in (
        ("Key results:", summary.key_results),
        ("Pending work:", summary.pending_work),
        ("Decisions:", summary.decisions),
    ):
        if items:
            lines.append(heading)
            lines.extend(f"- {item}" for item in items)
    return "\n".join(lines)
