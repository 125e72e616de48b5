"""Tools the agent loop handles itself: plan mode control and ask_user."""

from x_code.tools.registry import Tool, ToolKind


class EnterPlanModeTool(Tool):
    name = "enter_plan_mode"
    description = (
        "Enter plan mode for exploring the codebase and designing an implementation plan. "
        "Use proactively for non-trivial tasks: new features, multi-file changes, architectural "
        "decisions, unclear requirements. Skip for single-line fixes, obvious bugs, specific user instructions."
    )
    kind = ToolKind.CONTROL
    parameters = {"type": "object", "properties": {}, "required": []}


class ExitPlanModeTool(Tool):
    name = "exit_plan_mode"
    description = (
        "Signal that the plan is complete and ready for user review. "
        "The system will read the plan file and present it to the user."
    )
    kind = ToolKind.CONTROL
    parameters = {"type": "object", "properties": {}, "required": []}


class AskUserTool(Tool):
    name = "ask_user"
    description = (
        "Ask the user a clarifying question with multiple-choice options. "
        "Use when you need user input to decide between approaches."
    )
    kind = ToolKind.INTERACTIVE
    parameters = {
        "type": "object",
        "properties": {
            "question": {
                "type": "string",
                "description": "The question to ask",
            },
            "options": {
                "type": "array",
                "minItems": 2,
                "maxItems": 4,
                "description": 'Choices (an "Other" option is added automatically)',
                "items": {
                    "type": "object",
                    "properties": {
                        "label": {"type": "string", "description": "Option label (1-5 words)"},
                        "description": {"type": "string", "description": "What this option means"},
                    },
                    "required": ["label"],
                },
            },
        },
        "required": ["question", "options"],
    }
