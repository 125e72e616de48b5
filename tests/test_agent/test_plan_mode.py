from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

from x_code.plan_mode import PlanStore, enter_plan_mode, exit_plan_mode, generate_plan_id
from x_code.state import ConversationState
from x_code.system_prompt import build_system_prompt


def test_plan_id_is_filesystem_safe_utc_timestamp():
    moment = datetime(2026, 3, 1, 14, 30, 5, 123456, tzinfo=timezone(timedelta(hours=2)))

    assert generate_plan_id(moment) == "2026-03-01T12-30-05"


def test_enter_plan_mode_creates_directory_and_sets_state(tmp_path: Path):
    plans = PlanStore(tmp_path)
    state = ConversationState()

    text = enter_plan_mode(state, plans)

    assert state.plan_mode is True
    assert state.plan_id is not None
    assert plans.directory.is_dir()
    assert text == (
        f"Plan mode activated. Plan ID: {state.plan_id}. Use only read-only tools. "
        f"Save plan to {plans.path_for(state.plan_id)}"
    )


def test_exit_returns_plan_content(tmp_path: Path):
    plans = PlanStore(tmp_path)
    state = ConversationState()
    enter_plan_mode(state, plans)
    plans.path_for(state.plan_id).write_text("1. Do the thing", encoding="utf-8")

    text = exit_plan_mode(state, plans)

    assert text == "Plan ready for review:\n\n1. Do the thing"
    assert state.plan_mode is False
    assert state.plan_id is None


def test_exit_without_plan_file_or_id(tmp_path: Path):
    plans = PlanStore(tmp_path)
    state = ConversationState(plan_mode=True, plan_id="2026-01-01T00-00-00")

    assert exit_plan_mode(state, plans) == "Plan mode exited. No plan file found."
    assert exit_plan_mode(state, plans) == "Plan mode exited."


def test_list_plans_sorted(tmp_path: Path):
    plans = PlanStore(tmp_path)
    plans.ensure_dir()
    for plan_id in ("2026-02-01T00-00-00", "2026-01-01T00-00-00"):
        plans.path_for(plan_id).write_text("plan", encoding="utf-8")

    assert plans.list_plans() == ["2026-01-01T00-00-00", "2026-02-01T00-00-00"]


def test_system_prompt_overlay_only_in_plan_mode(tmp_path: Path):
    plan_path = PlanStore(tmp_path).path_for(generate_plan_id(datetime(2026, 1, 1, tzinfo=UTC)))

    normal = build_system_prompt(cwd=tmp_path)
    planning = build_system_prompt(plan_mode=True, plan_path=plan_path, cwd=tmp_path)

    assert "Plan mode is active" not in normal
    assert "Plan mode is active" in planning
    assert str(plan_path) in planning
    assert str(tmp_path) in normal
