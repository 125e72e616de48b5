"""Execution context: the stores and tool catalog one agent session works against."""

from dataclasses import dataclass
from pathlib import Path

from x_code.config import GLOBAL_DIR, Config, get_config
from x_code.knowledge.auto_memory import MemoryStores
from x_code.knowledge.project_scan import scan_project
from x_code.knowledge.session import SessionStore
from x_code.logging import get_logger
from x_code.plan_mode import PlanStore
from x_code.tools import build_tool_catalog
from x_code.tools.registry import ToolRegistry

log = get_logger(__name__)


@dataclass
class AgentContext:
    """Explicit store instances for one project; nothing here is process-global."""

    project_root: Path
    global_dir: Path
    memories: MemoryStores
    sessions: SessionStore
    plans: PlanStore
    tools: ToolRegistry

    @classmethod
    def create(
        cls,
        project_root: Path | str | None = None,
        global_dir: Path | str | None = None,
        config: Config | None = None,
        tools: ToolRegistry | None = None,
    ) -> "AgentContext":
        """Build a context rooted at `project_root` (default: cwd)."""
        cfg = config or get_config()
        root = Path(project_root or Path.cwd()).resolve()
        home = Path(global_dir).expanduser() if global_dir is not None else GLOBAL_DIR
        memories = MemoryStores.for_project(root, home, max_prompt_lines=cfg.memory.max_prompt_lines)
        return cls(
            project_root=root,
            global_dir=home,
            memories=memories,
            sessions=SessionStore(root),
            plans=PlanStore(root),
            tools=tools or build_tool_catalog(root, memories, cfg.context.max_tool_result_chars),
        )

    def init(self, scan: bool | None = None, config: Config | None = None) -> None:
        """Load memories, evict stale facts and optionally seed project facts."""
        cfg = config or get_config()
        self.memories.init(cfg.memory.max_age_days)
        if cfg.memory.scan_project if scan is None else scan:
            scan_project(self.project_root, self.memories.project)
        log.debug("Context initialized", root=str(self.project_root))
