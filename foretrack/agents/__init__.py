"""AI Agents package."""

from foretrack.agents.ai_agents import (
    CategorizationAgent,
    ChatAgent,
    InsightAgent,
    parse_insights,
    parse_tips,
    strip_code_fences,
)

__all__ = [
    "CategorizationAgent",
    "ChatAgent",
    "InsightAgent",
    "parse_insights",
    "parse_tips",
    "strip_code_fences",
]
