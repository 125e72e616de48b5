from datetime import UTC, datetime, timedelta
from pathlib import Path

from x_code.knowledge.auto_memory import (
    AutoMemory,
    KnowledgeFact,
    MemoryStores,
    parse_memory,
    serialize_memory,
    today,
)


def _days_ago(days: int) -> str:
    return (datetime.now(UTC).date() - timedelta(days=days)).isoformat()


def test_add_replaces_fact_with_same_category_and_key(tmp_path: Path):
    memory = AutoMemory(tmp_path / "auto.md")

    memory.add(KnowledgeFact("package-manager", "pip", "tech-stack", today()))
    memory.add(KnowledgeFact("package-manager", "uv", "tech-stack", today()))
    memory.add(KnowledgeFact("package-manager", "note", "context", today()))

    facts = memory.all()
    assert [(f.category, f.fact) for f in facts] == [("tech-stack", "uv"), ("context", "note")]


def test_saved_file_uses_markdown_layout_and_reloads(tmp_path: Path):
    path = tmp_path / "nested" / "auto.md"
    memory = AutoMemory(path)
    memory.add(KnowledgeFact("package-manager", "uv", "tech-stack", "2026-03-01"))
    memory.add(KnowledgeFact("test-command", "pytest -q", "commands", "2026-03-02"))

    assert path.read_text(encoding="utf-8") == (
        "## Auto Memory\n"
        "\n"
        "### tech-stack\n"
        "- [2026-03-01] package-manager: uv\n"
        "\n"
        "### commands\n"
        "- [2026-03-02] test-command: pytest -q\n"
    )

    reloaded = AutoMemory(path)
    reloaded.load()
    assert reloaded.all() == memory.all()


def test_parse_ignores_unrecognized_lines():
    content = "# notes\n- stray bullet\n### conventions\nfree text\n- [2026-01-05] indent: 4 spaces\n"

    facts = parse_memory(content)

    assert facts == [KnowledgeFact("indent", "4 spaces", "conventions", "2026-01-05")]


def test_serialize_empty_is_empty_string():
    assert serialize_memory([]) == ""


def test_delete_with_and_without_category(tmp_path: Path):
    memory = AutoMemory(tmp_path / "auto.md")
    memory.add(KnowledgeFact("style", "black", "conventions", today()))
    memory.add(KnowledgeFact("style", "terse", "preferences", today()))

    memory.delete("style", "preferences")
    assert [f.category for f in memory.all()] == ["conventions"]

    memory.delete("style")
    assert memory.all() == []


def test_evict_drops_stale_and_invalid_dates(tmp_path: Path):
    memory = AutoMemory(tmp_path / "auto.md")
    memory.add(KnowledgeFact("fresh", "a", "context", _days_ago(1)))
    memory.add(KnowledgeFact("stale", "b", "context", _days_ago(120)))
    memory.add(KnowledgeFact("broken", "c", "context", "someday"))

    removed = memory.evict(90)

    assert removed == 2
    assert [f.key for f in memory.all()] == ["fresh"]
    reloaded = AutoMemory(tmp_path / "auto.md")
    reloaded.load()
    assert [f.key for f in reloaded.all()] == ["fresh"]


def test_prompt_content_truncates_long_memory(tmp_path: Path):
    memory = AutoMemory(tmp_path / "auto.md", max_prompt_lines=5)
    for i in range(10):
        memory.add(KnowledgeFact(f"k{i}", "v", "context", today()))

    content = memory.prompt_content()

    assert content.endswith("\n... (truncated)")
    assert len(content.split("\n")) == 6


def test_save_failure_keeps_memory_usable(tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    memory = AutoMemory(blocker / "auto.md")

    memory.add(KnowledgeFact("k", "v", "context", today()))

    assert memory.find("k").fact == "v"


def test_load_missing_file_is_empty(tmp_path: Path):
    memory = AutoMemory(tmp_path / "missing.md")
    memory.load()

    assert memory.all() == []


def test_memory_stores_init_loads_and_evicts_both_scopes(tmp_path: Path):
    stores = MemoryStores.for_project(tmp_path / "project", global_dir=tmp_path / "home")
    stores.project.path.parent.mkdir(parents=True)
    stores.project.path.write_text(
        f"### context\n- [{_days_ago(200)}] old: x\n- [{_days_ago(2)}] new: y\n", encoding="utf-8"
    )

    stores.init(max_age_days=90)

    assert [f.key for f in stores.project.all()] == ["new"]
    assert stores.global_.all() == []
    assert stores.for_scope("project") is stores.project
    assert stores.for_scope("global") is stores.global_
