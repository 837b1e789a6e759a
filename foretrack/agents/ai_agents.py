"""
AI Agents for Foretrack

The assistant is a thin layer over Gemini. Every agent here follows the
same contract:

CRITICAL BOUNDARIES:

1. INSIGHT AGENT:
   - CAN: Summarize the spending and budget figures it is given
   - CANNOT: See anything beyond the SpendingContext built for it
   - MUST: Return the static insight when there is nothing to analyze

2. CATEGORIZATION AGENT:
   - CAN: Pick one category for a free-text description
   - CANNOT: Invent a category; anything off-list becomes "Other"

3. CHAT AGENT:
   - CAN: Answer finance questions from the given context
   - MUST: Redirect off-topic questions back to finances

FAILURE POLICY:
A model error, an empty answer, or an answer we cannot parse never
reaches the user as an exception. Each operation has a static fallback
and returns it instead, and the fallback is logged so we can tell how
often users are seeing canned text.

The model is injected so tests can pass a fake with the same
`generate_content_async` coroutine.
"""

import json
import re
from typing import Any, Iterable, Optional

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from foretrack.audit import AuditLogger
from foretrack.config import get_settings
from foretrack.models.analytics import CategoryTotal
from foretrack.models.currency import format_amount
from foretrack.models.insight import (
    EMPTY_STATE_INSIGHT,
    FALLBACK_ANALYSIS,
    FALLBACK_CHAT_EMPTY,
    FALLBACK_CHAT_ERROR,
    FALLBACK_INSIGHT,
    FALLBACK_SAVINGS_TIPS,
    BudgetSummary,
    ExpenseSummary,
    FinancialInsight,
    SpendingContext,
)
from foretrack.models.transaction import UNCATEGORIZED, ExpenseCategory


logger = structlog.get_logger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\n?")

# Recent expenses included in a chat prompt.
CHAT_EXPENSE_SAMPLE = 5


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return _CODE_FENCE.sub("", text).strip()


def parse_insights(text: str) -> list[FinancialInsight]:
    """
    Parse a JSON array of insights.

    Entries that don't fit the insight shape are dropped.

    Raises:
        ValueError: If the text isn't a JSON array or no entry survives
    """
    data = json.loads(strip_code_fences(text))
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of insights")

    insights = []
    for item in data:
        try:
            insights.append(FinancialInsight.model_validate(item))
        except ValidationError:
            continue
    if not insights:
        raise ValueError("No usable insights in response")
    return insights


def parse_tips(text: str) -> list[str]:
    """
    Parse a JSON array of tip strings.

    Raises:
        ValueError: If the text isn't a JSON array of non-empty strings
    """
    data = json.loads(strip_code_fences(text))
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of tips")
    tips = [tip.strip() for tip in data if isinstance(tip, str) and tip.strip()]
    if not tips:
        raise ValueError("No usable tips in response")
    return tips


def _to_json(items: Iterable[Any], indent: Optional[int] = 2) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items], indent=indent)


class _GeminiAgent:
    """Shared model setup and fallback logging."""

    # Overridden per agent; classification wants very little randomness.
    temperature: Optional[float] = None

    def __init__(
        self,
        model: Any = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._audit = audit_logger
        # Built on first use so a missing API key lands on the fallback path.
        self._model = model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        settings = get_settings().gemini
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": self.temperature if self.temperature is not None else settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    async def _generate(self, prompt: str) -> str:
        if self._model is None:
            self._model = self._configure_genai()
        response = await self._model.generate_content_async(prompt)
        return (response.text or "").strip()

    async def _fallback(
        self,
        operation: str,
        reason: str,
        user_id: Optional[str] = None,
    ) -> None:
        logger.warning("ai_fallback_used", operation=operation, reason=reason)
        if self._audit:
            await self._audit.log_ai_fallback(
                operation=operation,
                reason=reason,
                user_id=user_id,
            )


class InsightAgent(_GeminiAgent):
    """
    Generates insights, a short spending analysis and savings tips.

    Works only from the SpendingContext it is handed.
    """

    async def generate_insights(
        self,
        context: SpendingContext,
        user_id: Optional[str] = None,
    ) -> list[FinancialInsight]:
        """Two or three structured insights, or a single static one."""
        if not context.expenses:
            return [EMPTY_STATE_INSIGHT]

        prompt = f"""You are a helpful financial advisor AI. Analyze the following financial data and provide 2-3 personalized insights.

Expenses this month:
{_to_json(context.expenses)}

Budget status:
{_to_json(context.budgets)}

Total spent this month: {format_amount(context.total_spent, context.currency)}

Provide insights in the following JSON format (return ONLY the JSON array, no markdown):
[
  {{
    "type": "tip" | "warning" | "achievement" | "suggestion",
    "title": "Short title (3-5 words)",
    "message": "Detailed insight (1-2 sentences)",
    "icon": "emoji that represents this insight"
  }}
]

Guidelines:
- "warning" for categories near or over budget
- "achievement" for good spending habits or staying under budget
- "tip" for general financial advice based on spending patterns
- "suggestion" for specific actionable recommendations
- Keep messages concise and actionable
- Be encouraging but honest"""

        try:
            return parse_insights(await self._generate(prompt))
        except Exception as e:
            await self._fallback("generate_insights", str(e), user_id)
            return [FALLBACK_INSIGHT]

    async def generate_spending_analysis(
        self,
        expenses: list[ExpenseSummary],
        budgets: list[BudgetSummary],
        user_id: Optional[str] = None,
    ) -> str:
        """A two or three sentence conversational summary."""
        prompt = f"""You are a friendly financial advisor. Provide a brief, conversational analysis of this spending data.

Expenses this month:
{_to_json(expenses)}

Budget status:
{_to_json(budgets)}

Write a 2-3 sentence summary that:
1. Highlights the main spending pattern
2. Gives one actionable tip
3. Uses a warm, encouraging tone

Keep it under 100 words. No bullet points or lists - just natural conversation."""

        try:
            text = await self._generate(prompt)
        except Exception as e:
            await self._fallback("generate_spending_analysis", str(e), user_id)
            return FALLBACK_ANALYSIS
        return text or FALLBACK_ANALYSIS

    async def generate_savings_tips(
        self,
        top_categories: list[CategoryTotal],
        currency: str = "USD",
        user_id: Optional[str] = None,
    ) -> list[str]:
        """Three tips aimed at the biggest spending categories."""
        lines = "\n".join(
            f"- {c.category}: {format_amount(c.total, currency)}" for c in top_categories
        )
        prompt = f"""Based on these top spending categories, provide 3 specific, actionable tips to save money:

Top spending categories:
{lines}

Return ONLY a JSON array of 3 tip strings (no markdown):
["tip 1", "tip 2", "tip 3"]

Make tips specific to the categories shown, practical, and encouraging."""

        try:
            return parse_tips(await self._generate(prompt))
        except Exception as e:
            await self._fallback("generate_savings_tips", str(e), user_id)
            return list(FALLBACK_SAVINGS_TIPS)


class CategorizationAgent(_GeminiAgent):
    """Maps a free-text expense description to one allowed category."""

    temperature = 0.1

    async def categorize_expense(
        self,
        description: str,
        allowed: Optional[list[str]] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """
        Pick a category for the description.

        Args:
            description: Already validated and sanitized text
            allowed: Category names to choose from; defaults to the
                     built-in expense categories

        Returns:
            One of `allowed`, or "Other" if the model answers anything else
        """
        categories = allowed or [c.value for c in ExpenseCategory]
        if UNCATEGORIZED not in categories:
            categories = [*categories, UNCATEGORIZED]

        prompt = f"""Categorize this expense description into one of these categories: {", ".join(categories)}

Expense description: "{description}"

Return ONLY the category name, nothing else."""

        try:
            answer = (await self._generate(prompt)).strip("\"'. ")
        except Exception as e:
            await self._fallback("categorize_expense", str(e), user_id)
            return UNCATEGORIZED

        return answer if answer in categories else UNCATEGORIZED


class ChatAgent(_GeminiAgent):
    """Answers free-form questions about the user's own finances."""

    async def chat(
        self,
        message: str,
        context: SpendingContext,
        user_id: Optional[str] = None,
    ) -> str:
        recent = context.expenses[:CHAT_EXPENSE_SAMPLE]
        prompt = f"""You are Foretrack AI, a friendly and helpful personal finance assistant. The user is asking about their finances.

User's financial context:
- Total spent this month: {format_amount(context.total_spent, context.currency)}
- Recent expenses: {_to_json(recent, indent=None)}
- Budget status: {_to_json(context.budgets, indent=None)}

User's question: "{message}"

Provide a helpful, concise response (2-4 sentences). Be friendly, use emojis sparingly, and give specific advice when possible. If the question isn't about finances, politely redirect to financial topics."""

        try:
            text = await self._generate(prompt)
        except Exception as e:
            await self._fallback("chat", str(e), user_id)
            return FALLBACK_CHAT_ERROR
        return text or FALLBACK_CHAT_EMPTY
