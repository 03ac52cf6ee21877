"""Prompt rendering for the advice model - one template per recommendation type"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from advisor_gateway.domain.exceptions import OptionError, PromptValidationError
from advisor_gateway.domain.models import (
    BreakdownGroup,
    FinancialSnapshot,
    Prompt,
    PromptStats,
    RecommendationType,
    ValidationReport,
)

PERSONAS: Dict[str, str] = {
    "financial_advisor": (
        "You are an AI financial advisor with expertise in personal finance, investment strategies, "
        "debt management, and credit optimization."
    ),
    "budget_analyst": (
        "You are a professional budget analyst specializing in expense optimization and savings strategies."
    ),
    "investment_advisor": (
        "You are a certified investment advisor with deep knowledge of portfolio management and risk assessment."
    ),
    "debt_counselor": (
        "You are a debt management specialist focused on helping people reduce debt and improve financial health."
    ),
    "credit_specialist": (
        "You are a credit optimization expert with knowledge of credit scores, utilization, "
        "and improvement strategies."
    ),
}

TYPE_PERSONAS: Dict[RecommendationType, str] = {
    RecommendationType.GENERAL: "financial_advisor",
    RecommendationType.BUDGET: "budget_analyst",
    RecommendationType.INVESTMENT: "investment_advisor",
    RecommendationType.DEBT: "debt_counselor",
    RecommendationType.CREDIT: "credit_specialist",
}

RESPONSE_FORMATS: Dict[str, str] = {
    "structured": "Provide your response in a structured format with clear sections and actionable recommendations.",
    "bullet_points": "Format your response as bullet points for easy reading.",
    "numbered": "Provide numbered recommendations with clear priorities.",
    "conversational": "Respond in a conversational, friendly tone while maintaining professionalism.",
}

GENERAL_FOCUS_AREAS: Dict[str, str] = {
    "overall_health": "Analyze the user's overall financial health",
    "improvement_areas": "Identify specific areas for improvement",
    "actionable_steps": "Provide 3-5 key actionable recommendations",
}

REQUIRED_FIELDS = ("total_assets", "total_liabilities", "monthly_income", "net_worth")

SUMMARY_HEADER = "Financial Data Summary:"


@dataclass
class PromptOptions:
    """Per-request knobs; each template reads the ones that apply to it"""

    response_format: str = "structured"
    include_summary: bool = True
    focus_areas: List[str] = field(default_factory=lambda: list(GENERAL_FOCUS_AREAS))
    # budget
    include_income_analysis: bool = True
    include_expense_analysis: bool = True
    include_savings_recommendations: bool = True
    # investment
    risk_tolerance: str = "moderate"
    time_horizon: str = "long-term"
    include_diversification: bool = True
    # debt
    include_repayment_strategy: bool = True
    include_consolidation: bool = True
    include_negotiation: bool = True
    # credit
    include_utilization_tips: bool = True
    include_payment_strategies: bool = True
    include_credit_building: bool = True


def _money(value: float) -> str:
    return f"${value:,.2f}"


def compute_prompt_stats(text: str) -> PromptStats:
    """Length and token estimates for monitoring (roughly four characters per token)"""
    return PromptStats(
        length=len(text),
        word_count=len(text.split()),
        line_count=len(text.split("\n")),
        estimated_tokens=math.ceil(len(text) / 4),
        has_financial_data=SUMMARY_HEADER in text,
        has_instructions="Provide" in text or "Analyze" in text,
    )


class PromptBuilder:
    """Builds bounded, validated prompts from a FinancialSnapshot"""

    def __init__(self, max_items_per_section: int = 25):
        self.max_items_per_section = max_items_per_section
        self._templates: Dict[RecommendationType, Callable[[FinancialSnapshot, PromptOptions], List[str]]] = {
            RecommendationType.GENERAL: self._general_body,
            RecommendationType.BUDGET: self._budget_body,
            RecommendationType.INVESTMENT: self._investment_body,
            RecommendationType.DEBT: self._debt_body,
            RecommendationType.CREDIT: self._credit_body,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, snapshot: FinancialSnapshot) -> ValidationReport:
        """
        Check required fields and numeric sanity.

        Missing or non-finite required fields are errors; implausible values
        (negative assets, no income, utilization over 100%) are warnings only.
        """
        report = ValidationReport()

        for name in REQUIRED_FIELDS:
            value = getattr(snapshot, name, None)
            if value is None:
                report.errors.append(f"Missing required field: {name}")
            elif not math.isfinite(value):
                report.errors.append(f"Non-finite value for field: {name}")

        if not report.is_valid:
            return report

        if snapshot.total_assets < 0:
            report.warnings.append("Total assets is negative")
        if snapshot.monthly_income <= 0:
            report.warnings.append("Monthly income is zero or negative")
        if snapshot.credit_utilization is not None and snapshot.credit_utilization > 100:
            report.warnings.append("Credit utilization exceeds 100%")

        return report

    def build(
        self,
        recommendation_type: RecommendationType,
        snapshot: FinancialSnapshot,
        options: Optional[PromptOptions] = None,
    ) -> Prompt:
        """
        Render the template for a recommendation type.

        Raises:
            PromptValidationError: Required snapshot fields are missing, or the
                response format is unknown
        """
        options = options or PromptOptions()
        recommendation_type = RecommendationType(recommendation_type)
        report = self._check(snapshot, recommendation_type.value)
        response_format = self._response_format(options.response_format)

        parts = [PERSONAS[TYPE_PERSONAS[recommendation_type]], ""]
        parts.extend(self._templates[recommendation_type](snapshot, options))
        parts.extend(["", response_format])

        return self._finalize(recommendation_type.value, parts, report.warnings)

    def build_custom(
        self,
        snapshot: FinancialSnapshot,
        persona: str = "financial_advisor",
        focus_areas: Optional[Sequence[str]] = None,
        custom_instructions: str = "",
        response_format: str = "structured",
        include_data: bool = True,
        label: str = "custom",
    ) -> Prompt:
        """
        Render an ad hoc prompt without a dedicated template.

        `persona` is either a key of PERSONAS or the persona text itself.
        """
        report = self._check(snapshot, label)
        persona_text = PERSONAS.get(persona, persona).strip()
        if not persona_text:
            raise PromptValidationError(["Persona must not be empty"])
        format_text = self._response_format(response_format)

        parts = [persona_text, ""]
        if include_data:
            parts.extend(self._summary_section(snapshot))
            parts.extend(self._assets_section(snapshot))
            parts.extend(self._income_section(snapshot))
            parts.extend(self._liabilities_section(snapshot))
            parts.extend(self._credit_cards_section(snapshot))
        if custom_instructions:
            parts.extend(["", custom_instructions.strip()])
        if focus_areas:
            parts.extend(["", "Focus on the following areas:"])
            parts.extend(f"- {area}" for area in focus_areas)
        parts.extend(["", format_text])

        return self._finalize(label, parts, report.warnings)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def _general_body(self, snapshot: FinancialSnapshot, options: PromptOptions) -> List[str]:
        lines: List[str] = []
        if options.include_summary:
            lines.extend(self._summary_section(snapshot))
            lines.extend(self._assets_section(snapshot))
            lines.extend(self._income_section(snapshot))
            lines.extend(self._liabilities_section(snapshot))
            lines.extend(self._credit_cards_section(snapshot))

        lines.extend([
            "",
            "Based on this comprehensive financial data, provide general, actionable financial recommendations.",
            "Focus on overall financial health, potential areas for improvement, and general advice.",
            "",
        ])
        for area in options.focus_areas:
            lines.append(f"- {GENERAL_FOCUS_AREAS.get(area, area)}")
        return lines

    def _budget_body(self, snapshot: FinancialSnapshot, options: PromptOptions) -> List[str]:
        lines = self._summary_section(snapshot)
        lines.extend(self._breakdown_section("Income by Source:", snapshot.income_breakdown))
        lines.extend(self._breakdown_section("Liabilities by Type:", snapshot.liability_breakdown))
        lines.extend(["", "Analyze the user's budget and provide detailed recommendations:", ""])

        if options.include_income_analysis:
            lines.append("- Income Analysis: Evaluate income sources and stability")
        if options.include_expense_analysis:
            lines.append("- Expense Analysis: Identify spending patterns and optimization opportunities")
        if options.include_savings_recommendations:
            lines.append("- Savings Strategy: Suggest ways to increase savings rate")

        lines.extend(["", "Provide specific, actionable budgeting strategies and spending optimization tips."])
        return lines

    def _investment_body(self, snapshot: FinancialSnapshot, options: PromptOptions) -> List[str]:
        lines = self._summary_section(snapshot)
        lines.extend(self._breakdown_section("Asset Allocation:", snapshot.asset_breakdown))
        lines.extend(self._assets_section(snapshot))
        lines.extend([
            "",
            "Based on the user's financial profile, provide personalized investment recommendations:",
            "",
            f"- Risk Tolerance: {options.risk_tolerance}",
            f"- Time Horizon: {options.time_horizon}",
            f"- Current Assets: {_money(snapshot.total_assets)}",
            f"- Net Worth: {_money(snapshot.net_worth)}",
            "",
        ])
        if options.include_diversification:
            lines.append("- Diversification Strategy: Suggest asset allocation and diversification")
        lines.append("- Investment Vehicles: Recommend suitable investment options")
        lines.append("- Risk Management: Address risk factors and mitigation strategies")
        lines.extend(["", "Provide 2-3 specific investment recommendations with rationale."])
        return lines

    def _debt_body(self, snapshot: FinancialSnapshot, options: PromptOptions) -> List[str]:
        lines = self._summary_section(snapshot)
        lines.extend(self._breakdown_section("Liabilities by Type:", snapshot.liability_breakdown))
        lines.extend(self._liabilities_section(snapshot))
        lines.extend(self._credit_cards_section(snapshot))
        lines.extend([
            "",
            "Analyze the user's debt situation and provide actionable debt management strategies:",
            "",
            f"- Total Debt: {_money(snapshot.total_debt)} "
            f"(debt-to-income ratio {snapshot.debt_to_income_ratio * 100:.1f}%)",
        ])
        if options.include_repayment_strategy:
            lines.append("- Repayment Strategy: Suggest debt payoff methods (snowball, avalanche, etc.)")
        if options.include_consolidation:
            lines.append("- Debt Consolidation: Evaluate consolidation opportunities")
        if options.include_negotiation:
            lines.append("- Interest Rate Negotiation: Tips for reducing interest rates")
        lines.append("- Payment Optimization: Strategies to accelerate debt payoff")
        lines.append("- Budget Allocation: How much to allocate to debt vs. savings")
        lines.extend(["", "Provide 2-3 specific debt management recommendations with clear action steps."])
        return lines

    def _credit_body(self, snapshot: FinancialSnapshot, options: PromptOptions) -> List[str]:
        lines = self._summary_section(snapshot)
        lines.extend(self._credit_cards_section(snapshot))
        lines.extend([
            "",
            f"Total Credit Limit: {_money(snapshot.total_credit_limit)}",
            f"Available Credit: {_money(snapshot.total_available_credit)}",
            "",
            "Analyze the user's credit situation and provide optimization recommendations:",
            "",
        ])
        if options.include_utilization_tips:
            lines.append(
                f"- Credit Utilization: Current utilization is {snapshot.credit_utilization:.1f}% "
                "- provide optimization tips"
            )
        if options.include_payment_strategies:
            lines.append("- Payment Strategies: Tips for improving payment history and reducing balances")
        if options.include_credit_building:
            lines.append("- Credit Building: Strategies to improve credit score over time")
        lines.append("- Credit Card Management: Best practices for credit card usage")
        lines.append("- Credit Monitoring: Importance of regular credit monitoring")
        lines.extend(["", "Provide 2-3 specific credit optimization tips with actionable steps."])
        return lines

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _summary_section(self, snapshot: FinancialSnapshot) -> List[str]:
        return [
            SUMMARY_HEADER,
            f"- Total Assets: {_money(snapshot.total_assets)}",
            f"- Total Liabilities: {_money(snapshot.total_liabilities)}",
            f"- Total Credit Card Debt: {_money(snapshot.total_credit_card_debt)}",
            f"- Monthly Income: {_money(snapshot.monthly_income)}",
            f"- Net Worth: {_money(snapshot.net_worth)}",
            f"- Debt-to-Income Ratio: {snapshot.debt_to_income_ratio * 100:.1f}%",
            f"- Credit Utilization: {snapshot.credit_utilization:.1f}%",
        ]

    def _bounded(self, title: str, rows: Iterable[str], empty: str) -> List[str]:
        rows = list(rows)
        lines = ["", title]
        if not rows:
            lines.append(f"- {empty}")
            return lines
        lines.extend(rows[: self.max_items_per_section])
        hidden = len(rows) - self.max_items_per_section
        if hidden > 0:
            lines.append(f"- ...and {hidden} more")
        return lines

    def _breakdown_section(self, title: str, groups: Sequence[BreakdownGroup]) -> List[str]:
        return self._bounded(
            title,
            (f"- {g.category}: {_money(g.total)} across {g.count} record(s)" for g in groups),
            "None recorded",
        )

    def _assets_section(self, snapshot: FinancialSnapshot) -> List[str]:
        return self._bounded(
            "Asset Breakdown:",
            (
                f"- {a.name}: {_money(a.current_value)} ({a.asset_type}, {a.interest_rate:g}% return)"
                for a in snapshot.assets
            ),
            "No assets recorded",
        )

    def _income_section(self, snapshot: FinancialSnapshot) -> List[str]:
        return self._bounded(
            "Income Sources:",
            (f"- {i.income_source}: {_money(i.amount)} ({i.frequency})" for i in snapshot.incomes),
            "No income recorded",
        )

    def _liabilities_section(self, snapshot: FinancialSnapshot) -> List[str]:
        def describe(liab) -> str:
            due = f", due {liab.due_date.isoformat()}" if liab.due_date else ""
            return (
                f"- {liab.name}: {_money(liab.outstanding_amount)} "
                f"({liab.liability_type}, {liab.interest_rate:g}% APR{due})"
            )

        return self._bounded("Liabilities:", (describe(l) for l in snapshot.liabilities), "No liabilities recorded")

    def _credit_cards_section(self, snapshot: FinancialSnapshot) -> List[str]:
        def describe(card) -> str:
            due = f", due {card.due_date.isoformat()}" if card.due_date else ""
            return (
                f"- {card.bank_name} {card.card_name}: {_money(card.outstanding_balance)}/"
                f"{_money(card.credit_limit)} ({card.utilization_rate:.1f}% utilized, "
                f"{card.interest_rate:g}% APR{due})"
            )

        return self._bounded("Credit Cards:", (describe(c) for c in snapshot.credit_cards), "No credit cards recorded")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check(self, snapshot: FinancialSnapshot, label: str) -> ValidationReport:
        report = self.validate(snapshot)
        if not report.is_valid:
            logging.error(
                "Financial data validation failed",
                extra={"recommendation_type": label, "errors": report.errors},
            )
            raise PromptValidationError(report.errors)
        for warning in report.warnings:
            logging.warning(
                f"Financial data warning: {warning}",
                extra={"recommendation_type": label},
            )
        return report

    def _response_format(self, response_format: str) -> str:
        try:
            return RESPONSE_FORMATS[response_format]
        except KeyError:
            raise OptionError(f"Unknown response format: {response_format}") from None

    def _finalize(self, label: str, parts: List[str], warnings: List[str]) -> Prompt:
        text = "\n".join(parts)
        text = re.sub(r"\n{3,}", "\n\n", text).strip()
        if not text.endswith((".", "!", "?")):
            text += "."

        stats = compute_prompt_stats(text)
        logging.info(
            "Prompt generated",
            extra={
                "recommendation_type": label,
                "length": stats.length,
                "word_count": stats.word_count,
                "estimated_tokens": stats.estimated_tokens,
            },
        )
        return Prompt(recommendation_type=label, text=text, stats=stats, warnings=list(warnings))
