"""AI Agents package."""

from minabung.agents.ai_agents import (
    AI_FAILURE_MESSAGE,
    BudgetSuggestion,
    GroupPlan,
    GroupPlannerAgent,
)

__all__ = [
    "AI_FAILURE_MESSAGE",
    "BudgetSuggestion",
    "GroupPlan",
    "GroupPlannerAgent",
]
