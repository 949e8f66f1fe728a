"""
AI Agents for Minabung

DESIGN DECISION: The language model is only ever asked for a STARTER
PLAN: a group name, a description, and a handful of budget categories.
It never touches stored data. The ledger decides what gets persisted.

CRITICAL BOUNDARIES:

1. GROUP PLANNER AGENT:
   - CAN: Propose a group name, description and budget categories
   - CANNOT: Choose icons or colors outside the fixed sets
   - CANNOT: Persist anything
   - MUST: Fail loudly when the response is not usable JSON

One prompt, one completion. No retry, no streaming. The request is
bounded by a timeout so a slow model cannot hang the caller.
"""

import json
from decimal import Decimal
from typing import Any, Optional

import google.generativeai as genai
from pydantic import BaseModel, Field, ValidationError, field_validator

from minabung.config import AppSettings, GeminiSettings, get_settings
from minabung.errors import AIGenerationError
from minabung.models.group import (
    GROUP_DESCRIPTION_MAX_LENGTH,
    GROUP_NAME_MAX_LENGTH,
    BudgetColor,
    BudgetIcon,
)

AI_FAILURE_MESSAGE = "AI failed to generate group"


class BudgetSuggestion(BaseModel):
    """One budget category proposed by the model."""

    name: str = ""
    limit: Decimal = Decimal("0")
    icon: str = ""
    color: str = ""

    @field_validator("limit", mode="before")
    @classmethod
    def default_missing_limit(cls, v: Any) -> Any:
        return 0 if v is None else v


class GroupPlan(BaseModel):
    """
    The model's proposal for a new group.

    Everything is optional at parse time; defaults are applied by
    GroupPlannerAgent.apply_defaults before the plan is used.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    budgets: list[BudgetSuggestion] = Field(default_factory=list)

    @field_validator("budgets", mode="before")
    @classmethod
    def default_missing_budgets(cls, v: Any) -> Any:
        return [] if v is None else v


class GroupPlannerAgent:
    """
    AI agent for the AI-assisted group creation flow.

    RESPONSIBILITIES:
    - Turn a free-form description of a household into a starter plan
    - Keep icons and colors inside the fixed sets
    - Keep budget names short enough for the mobile UI

    BOUNDARIES:
    - NEVER persists data
    - NEVER retries a failed generation
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        app_settings: Optional[AppSettings] = None,
        model: Any = None,
    ):
        self._settings = settings or get_settings().gemini
        self._app_settings = app_settings or get_settings().app
        self._model = model
        if self._model is None:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    def build_prompt(self, request: str) -> str:
        """Build the single system prompt sent to the model."""
        icons = ", ".join(icon.value for icon in BudgetIcon)
        colors = ", ".join(color.value for color in BudgetColor)
        max_length = self._app_settings.budget_name_max_length

        return f"""You are setting up a shared budgeting group for a household app.

The user described their group like this:
"{request}"

Propose a group name, a one-sentence description, and 3 to 8 monthly budget
categories that fit the description.

Rules for each budget:
- name: at most {max_length} characters
- limit: a positive number, the monthly spending limit in the user's currency
- icon: exactly one of [{icons}]
- color: exactly one of [{colors}]

Respond with ONLY a JSON object in this exact format:
{{"name": "group name", "description": "short description", "budgets": [{{"name": "Groceries", "limit": 500000, "icon": "shopping-cart", "color": "green"}}]}}"""

    def parse_response(self, text: str) -> GroupPlan:
        """
        Parse the model's text into a GroupPlan.

        Raises:
            AIGenerationError: If the text holds no JSON object, or the
                object does not have the expected shape
        """
        text = (text or "").strip()
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise AIGenerationError(AI_FAILURE_MESSAGE)

        try:
            data = json.loads(text[start:end])
            return GroupPlan.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise AIGenerationError(AI_FAILURE_MESSAGE) from e

    def apply_defaults(self, plan: GroupPlan) -> GroupPlan:
        """
        Fill gaps and clamp values before anything is persisted.

        - missing name -> configured default group name
        - missing description -> ""
        - name and description are cut to what a Group accepts
        - budgets without a name are dropped, long names are truncated
        - unknown icon/color -> first token of the fixed set
        """
        max_length = self._app_settings.budget_name_max_length
        icons = {icon.value for icon in BudgetIcon}
        colors = {color.value for color in BudgetColor}

        budgets = []
        for suggestion in plan.budgets:
            name = suggestion.name.strip()[:max_length].strip()
            if not name:
                continue
            budgets.append(BudgetSuggestion(
                name=name,
                limit=suggestion.limit,
                icon=suggestion.icon if suggestion.icon in icons else list(BudgetIcon)[0].value,
                color=suggestion.color if suggestion.color in colors else list(BudgetColor)[0].value,
            ))

        name = (plan.name or "").strip()[:GROUP_NAME_MAX_LENGTH].strip()
        description = (plan.description or "").strip()[:GROUP_DESCRIPTION_MAX_LENGTH]
        return GroupPlan(
            name=name or self._app_settings.default_group_name,
            description=description,
            budgets=budgets,
        )

    async def plan_group(self, request: str) -> GroupPlan:
        """
        Ask the model for a starter plan for a new group.

        Returns:
            A plan with defaults applied, ready to persist

        Raises:
            AIGenerationError: If the model call fails or its response
                cannot be used
        """
        try:
            response = await self._model.generate_content_async(
                self.build_prompt(request),
                request_options={"timeout": self._settings.request_timeout_seconds},
            )
            text = response.text
        except Exception as e:
            raise AIGenerationError(AI_FAILURE_MESSAGE) from e

        return self.apply_defaults(self.parse_response(text))
