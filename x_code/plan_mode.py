"""Plan mode: a two-state gate (inactive/active) with on-disk plan files."""

from datetime import UTC, datetime
from pathlib import Path

from x_code.config import PROJECT_DIR_NAME
from x_code.logging import get_logger
from x_code.state import ConversationState

log = get_logger(__name__)

PLANS_DIR = "plans"


def generate_plan_id(now: datetime | None = None) -> str:
    """Plan id from the UTC timestamp, e.g. `2026-03-01T12-30-05`."""
    moment = now or datetime.now(UTC)
    iso = moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")
    return iso.replace(":", "-").replace(".", "-")[:19]


class PlanStore:
    """Plan files under `<project>/.x-code/plans/`."""

    def __init__(self, project_root: Path | str):
        self.directory = Path(project_root) / PROJECT_DIR_NAME / PLANS_DIR

    def path_for(self, plan_id: str) -> Path:
        return self.directory / f"{plan_id}.md"

    def ensure_dir(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def read(self, plan_id: str) -> str | None:
        """Return plan content, or None when the plan file is missing or unreadable."""
        try:
            return self.path_for(plan_id).read_text(encoding="utf-8")
        except OSError:
            return None

    def list_plans(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(path.stem for path in self.directory.glob("*.md"))


def enter_plan_mode(state: ConversationState, plans: PlanStore) -> str:
    """Activate plan mode and return the synthetic tool result."""
    plan_id = generate_plan_id()
    try:
        plans.ensure_dir()
    except OSError as e:
        log.warning("Failed to create plans directory", path=str(plans.directory), error=str(e))
    state.plan_mode = True
    state.plan_id = plan_id
    log.info("Plan mode entered", plan_id=plan_id)
    return (
        f"Plan mode activated. Plan ID: {plan_id}. Use only read-only tools. "
        f"Save plan to {plans.path_for(plan_id)}"
    )


def exit_plan_mode(state: ConversationState, plans: PlanStore) -> str:
    """Deactivate plan mode and return the plan for review."""
    plan_id = state.plan_id
    state.plan_mode = False
    state.plan_id = None
    if plan_id is None:
        return "Plan mode exited."

    content = plans.read(plan_id)
    log.info("Plan mode exited", plan_id=plan_id, has_plan=content is not None)
    if content is None:
        return "Plan mode exited. No plan file found."
    return f"Plan ready for review:\n\n{content}"
