"""
Insights Agent

DESIGN DECISION: The LLM only ever sees numbers we computed ourselves.

All aggregation (totals, need/want/neutral split, top categories, trends)
is deterministic Python over the months handed in. The model is asked to
turn those figures into narrative insights and must answer with JSON in the
shape of `OverviewInsights` / `MonthlyInsights`.

CRITICAL BOUNDARIES:
- CAN: Describe, compare and recommend based on the supplied figures
- CANNOT: Modify any month
- CANNOT: Invent figures that were not in the prompt

If there is no data, the agent returns "empty" insights without calling
the model. If no API key is configured, or the call or the JSON parse
fails, it returns "error" insights. It never raises.
"""

import json
from decimal import Decimal
from typing import Any, Iterable, Optional

import google.generativeai as genai
import structlog

from finance_tracker.config import get_settings
from finance_tracker.models.insights import (
    InsightItem,
    MonthComparison,
    MonthlyInsights,
    OverviewInsights,
)
from finance_tracker.models.ledger import ExpenseTag, Month


logger = structlog.get_logger(__name__)

# Expense categories analysed on their own: investment counts as saving,
# medical and insurance as protective spending.
SPECIAL_CATEGORIES = ("investment", "medical", "insurance")

TREND_MONTHS = 6


# =============================================================================
# DETERMINISTIC SUMMARIES
# =============================================================================

def tag_totals(months: Iterable[Month]) -> dict[str, Decimal]:
    """
    Need / want / neutral totals over expense entries.

    Legacy categories have no entries and contribute nothing; an entry
    without a tag counts as neutral.
    """
    totals = {tag.value: Decimal("0") for tag in ExpenseTag}
    for month in months:
        for category in month.expenses:
            for entry in getattr(category, "entries", None) or []:
                tag = entry.tag or ExpenseTag.NEUTRAL
                totals[tag.value] += entry.amount
    return totals


def special_totals(months: Iterable[Month]) -> dict[str, Decimal]:
    totals = {name: Decimal("0") for name in SPECIAL_CATEGORIES}
    for month in months:
        for category in month.expenses:
            key = category.category.strip().lower()
            if key in totals:
                totals[key] += category.amount
    return totals


def expenses_by_category(months: Iterable[Month]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for month in months:
        for category in month.expenses:
            totals[category.category] = totals.get(category.category, Decimal("0")) + category.amount
    return totals


def top_categories(months: Iterable[Month], limit: int) -> list[tuple[str, Decimal]]:
    ranked = sorted(
        expenses_by_category(months).items(),
        key=lambda item: item[1],
        reverse=True,
    )
    return ranked[:limit]


def summarize_months(months: list[Month], top_n: int = 5) -> dict[str, Any]:
    """
    Aggregate statistics across months, oldest first.

    Returns a plain dict so it can be logged and hashed as-is.
    """
    count = len(months)
    total_income = sum((m.total_income for m in months), Decimal("0"))
    total_expense = sum((m.total_expense for m in months), Decimal("0"))

    return {
        "months_tracked": count,
        "total_income": total_income,
        "total_expense": total_expense,
        "net_balance": total_income - total_expense,
        "avg_monthly_income": total_income / count if count else Decimal("0"),
        "avg_monthly_expense": total_expense / count if count else Decimal("0"),
        "tags": tag_totals(months),
        "special": special_totals(months),
        "top_categories": top_categories(months, top_n),
        "trend": [
            {
                "month_name": m.month_name,
                "total_income": m.total_income,
                "total_expense": m.total_expense,
                "carry_forward": m.carry_forward,
            }
            for m in months[-TREND_MONTHS:]
        ],
    }


def build_month_snapshot(month: Month) -> dict[str, Any]:
    """The ledger content of a month, as JSON-ready data."""
    return month.model_dump(
        mode="json",
        include={
            "id",
            "month_name",
            "year",
            "month",
            "income",
            "expenses",
            "total_income",
            "total_expense",
            "carry_forward",
        },
    )


def percent_change(current: Decimal, previous: Decimal) -> Optional[float]:
    if previous == 0:
        return None
    return float((current - previous) / previous * 100)


def _share(part: Decimal, whole: Decimal) -> str:
    if whole <= 0:
        return "0.0%"
    return f"{float(part / whole * 100):.1f}%"


def _extract_json(text: str) -> dict:
    """Pull the first {...} object out of a model reply (may be fenced)."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON object in model response")
    return json.loads(text[start:end])


# =============================================================================
# FALLBACK INSIGHTS
# =============================================================================

def empty_overview_insights() -> OverviewInsights:
    return OverviewInsights(
        financial_health_score=50,
        summary=(
            "No financial data available yet. Start tracking your income "
            "and expenses to receive personalized insights."
        ),
        insights=[
            InsightItem(
                id="empty-1",
                title="Get Started",
                description="Begin by adding your first month to track your income and expenses.",
                category="health",
                severity="info",
                actionable=True,
            )
        ],
    )


def error_overview_insights() -> OverviewInsights:
    return OverviewInsights(
        financial_health_score=50,
        summary=(
            "Unable to generate insights at this time. Please try again "
            "later or configure your Gemini API key."
        ),
        insights=[
            InsightItem(
                id="error-1",
                title="Insights Unavailable",
                description=(
                    "We encountered an issue generating your financial insights. "
                    "Your data is safe. Check your Gemini API configuration."
                ),
                category="health",
                severity="warning",
                actionable=False,
            )
        ],
    )


def empty_monthly_insights() -> MonthlyInsights:
    return MonthlyInsights(
        month_summary="No data available for this month.",
        recommendations=["Add income and expense entries to receive insights."],
    )


def error_monthly_insights() -> MonthlyInsights:
    return MonthlyInsights(
        month_summary="Unable to generate insights at this time.",
        insights=[
            InsightItem(
                id="error-1",
                title="Insights Unavailable",
                description="Please try again later or configure your Gemini API key.",
                category="health",
                severity="warning",
                actionable=False,
            )
        ],
    )


# =============================================================================
# AGENT
# =============================================================================

class InsightsAgent:
    """
    Turns ledger figures into narrative financial insights.

    Args:
        model: Anything with an async `generate_content_async(prompt)`
               returning an object with `.text`. Defaults to a Gemini
               model when an API key is configured.
    """

    def __init__(self, model: Any = None):
        settings = get_settings()
        self._settings = settings.gemini
        self._currency = settings.app.currency_symbol
        self._top_n = settings.app.top_categories_in_insights
        self._model = model
        if self._model is None and self._settings.api_key:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @property
    def is_configured(self) -> bool:
        return self._model is not None

    def _money(self, amount: Decimal) -> str:
        return f"{self._currency}{amount:,.2f}"

    async def _ask(self, prompt: str) -> dict:
        response = await self._model.generate_content_async(prompt)
        return _extract_json(response.text.strip())

    # -------------------------------------------------------------------------
    # Overview
    # -------------------------------------------------------------------------

    def build_overview_prompt(self, months: list[Month]) -> str:
        summary = summarize_months(months, self._top_n)
        tags = summary["tags"]
        special = summary["special"]

        top_lines = "\n".join(
            f"- {name}: {self._money(amount)}"
            for name, amount in summary["top_categories"]
        ) or "- none"
        trend_lines = "\n".join(
            f"{row['month_name']}: Income {self._money(row['total_income'])}, "
            f"Expenses {self._money(row['total_expense'])}, "
            f"Balance {self._money(row['carry_forward'])}"
            for row in summary["trend"]
        )

        return f"""You are a financial advisor analyzing a user's expense tracking data. Generate comprehensive financial insights in JSON format.

IMPORTANT CONTEXT:
- Investment: This is NOT a regular expense - it's savings/wealth building. Treat it positively as financial discipline.
- Medical & Insurance: These are essential protection expenses for health and financial security.

User Financial Data:
- Total Months Tracked: {summary['months_tracked']}
- Total Income: {self._money(summary['total_income'])}
- Total Expenses: {self._money(summary['total_expense'])}
- Net Balance: {self._money(summary['net_balance'])}
- Average Monthly Income: {self._money(summary['avg_monthly_income'])}
- Average Monthly Expense: {self._money(summary['avg_monthly_expense'])}

Expense Breakdown by Type:
- Need Expenses: {self._money(tags['need'])}
- Want Expenses: {self._money(tags['want'])}
- Neutral Expenses: {self._money(tags['neutral'])}

Special Categories (Analyze Separately):
- Investment (Savings/Wealth Building): {self._money(special['investment'])}
- Medical (Health Expenses): {self._money(special['medical'])}
- Insurance (Financial Protection): {self._money(special['insurance'])}

Top Expense Categories:
{top_lines}

Monthly Trends:
{trend_lines}

Provide:
1. A financial health score (0-100) based on savings rate, expense control, and trends
   - Give credit for Investment amounts as SAVINGS, not expenses
   - Consider Medical and Insurance as necessary protective spending
2. A brief summary (2-3 sentences) of overall financial health
3. 4-6 key insights covering spending patterns, savings discipline, protection coverage and budget optimization
4. 2-3 predictions or forward-looking recommendations

Respond ONLY with valid JSON in this exact structure (no markdown, no code blocks):
{{
  "financial_health_score": 75,
  "summary": "Your financial summary here",
  "insights": [
    {{
      "id": "insight-1",
      "title": "Short title",
      "description": "Detailed description",
      "category": "spending",
      "severity": "info",
      "actionable": true
    }}
  ],
  "predictions": ["Prediction 1", "Prediction 2"]
}}"""

    async def generate_overview_insights(
        self,
        user_id: str,
        months: list[Month],
    ) -> OverviewInsights:
        """
        Insights across all of a user's months (oldest first).
        """
        logger.info("generating_overview_insights", user_id=user_id, months=len(months))

        if not months:
            return empty_overview_insights()

        if not self.is_configured:
            logger.warning("gemini_not_configured", user_id=user_id)
            return error_overview_insights()

        try:
            data = await self._ask(self.build_overview_prompt(months))
            data.pop("generated_at", None)
            return OverviewInsights.model_validate(data)
        except Exception as e:
            logger.error("overview_insights_failed", user_id=user_id, error=str(e))
            return error_overview_insights()

    # -------------------------------------------------------------------------
    # Monthly
    # -------------------------------------------------------------------------

    def build_monthly_prompt(self, month: Month, previous: Optional[Month] = None) -> str:
        tags = tag_totals([month])
        special = special_totals([month])
        total_expense = month.total_expense

        savings_rate = (
            f"{float(month.carry_forward / month.total_income * 100):.1f}"
            if month.total_income > 0
            else "0"
        )

        expense_lines = "\n".join(
            f"- {c.category}: {self._money(c.amount)}"
            for c in sorted(month.expenses, key=lambda c: c.amount, reverse=True)
        ) or "- none"
        income_lines = "\n".join(
            f"- {c.category}: {self._money(c.amount)}" for c in month.income
        ) or "- none"

        comparison_text = ""
        if previous is not None:
            income_change = percent_change(month.total_income, previous.total_income)
            expense_change = percent_change(month.total_expense, previous.total_expense)
            comparison_text = (
                f"Previous Month Comparison ({previous.month_name}):\n"
                f"- Income Change: {'n/a' if income_change is None else f'{income_change:+.1f}%'}\n"
                f"- Expense Change: {'n/a' if expense_change is None else f'{expense_change:+.1f}%'}\n"
                f"- Previous Balance: {self._money(previous.carry_forward)}\n"
            )

        previous_name = previous.month_name if previous is not None else ""

        return f"""You are a financial advisor analyzing a specific month's financial data. Provide detailed insights.

IMPORTANT CONTEXT:
- Investment: This is NOT a regular expense - it's savings/wealth building. Treat it positively as financial discipline.
- Medical & Insurance: These are essential protection expenses for health and financial security.

Month: {month.month_name}
Total Income: {self._money(month.total_income)}
Total Expenses: {self._money(total_expense)}
Carry Forward: {self._money(month.carry_forward)}
Savings Rate: {savings_rate}%

Expense Breakdown by Category:
{expense_lines}

Need/Want/Neutral Analysis:
- Need: {self._money(tags['need'])} ({_share(tags['need'], total_expense)})
- Want: {self._money(tags['want'])} ({_share(tags['want'], total_expense)})
- Neutral: {self._money(tags['neutral'])} ({_share(tags['neutral'], total_expense)})

Special Categories (Analyze Separately):
- Investment (Savings/Wealth Building): {self._money(special['investment'])}
- Medical (Health Expenses): {self._money(special['medical'])}
- Insurance (Financial Protection): {self._money(special['insurance'])}

{comparison_text}
Income Sources:
{income_lines}

Provide:
1. A month summary (2-3 sentences)
2. 4-6 insights covering category analysis, savings discipline, protection adequacy, need/want patterns and notable changes
3. Comparison with previous month (if available)
4. 3-5 actionable recommendations

Respond ONLY with valid JSON (no markdown, no code blocks):
{{
  "month_summary": "Summary text",
  "insights": [
    {{
      "id": "insight-1",
      "title": "Title",
      "description": "Description",
      "category": "spending",
      "severity": "info",
      "actionable": true
    }}
  ],
  "comparisons": {{
    "previous_month": "{previous_name}",
    "changes": [
      {{"category": "Category name", "change": 10.5, "direction": "up"}}
    ]
  }},
  "recommendations": ["Recommendation 1", "Recommendation 2"]
}}"""

    async def generate_monthly_insights(
        self,
        user_id: str,
        month: Optional[Month],
        previous: Optional[Month] = None,
    ) -> MonthlyInsights:
        """
        Insights for one month, compared with the previous existing month.
        """
        if month is None:
            return empty_monthly_insights()

        logger.info("generating_monthly_insights", user_id=user_id, month_id=month.id)

        if not self.is_configured:
            logger.warning("gemini_not_configured", user_id=user_id)
            return error_monthly_insights()

        try:
            data = await self._ask(self.build_monthly_prompt(month, previous))
            data.pop("generated_at", None)
            if not data.get("comparisons"):
                data["comparisons"] = MonthComparison().model_dump()
            return MonthlyInsights.model_validate(data)
        except Exception as e:
            logger.error(
                "monthly_insights_failed",
                user_id=user_id,
                month_id=month.id,
                error=str(e),
            )
            return error_monthly_insights()
