"""
Explanation Context

The engine never writes prose itself. It hands a neutral fact bundle to an
ExplanationPort (a text-generation service) and caches what comes back on
the Decision. The bundle carries numbers and fragment summaries only.

OpenAIExplanationProvider is the production ExplanationPort: a chat model
under a no-advice system prompt, with a fixed fallback explanation.
"""

from __future__ import annotations

import asyncio
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from config.projection_config import ProjectionConfig, config as default_config
from projection_core.decision import Decision, DecisionExplanation
from projection_service.errors import DecisionNotFoundError
from projection_service.logging_utils import get_logger
from projection_service.ports import DecisionStore, ExplanationPort

logger = get_logger(__name__)

# Check if OpenAI SDK is available
try:
    from openai import AsyncOpenAI
    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False


@dataclass(frozen=True)
class ExplanationContext:
    """Facts an explanation may draw on."""
    decision_id: str
    title: str
    option_a: str
    option_b: str
    probability_a: float
    probability_b: float
    regret_risk_a: float
    regret_risk_b: float
    regret_level_a: str
    regret_level_b: str
    value_alignment: Dict[str, float] = field(default_factory=dict)
    top_fragments: Tuple[Tuple[str, str], ...] = ()   # (summary, favored option)
    evidence_count: int = 0
    is_close_call: Optional[bool] = None
    data_reliability: Optional[str] = None
    priority_axis: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'decision_id': self.decision_id,
            'title': self.title,
            'option_a': self.option_a,
            'option_b': self.option_b,
            'probability_a': round(self.probability_a, 4),
            'probability_b': round(self.probability_b, 4),
            'regret_risk_a': round(self.regret_risk_a, 4),
            'regret_risk_b': round(self.regret_risk_b, 4),
            'regret_level_a': self.regret_level_a,
            'regret_level_b': self.regret_level_b,
            'value_alignment': {k: round(v, 4) for k, v in self.value_alignment.items()},
            'top_fragments': [{'summary': s, 'favors': f} for s, f in self.top_fragments],
            'evidence_count': self.evidence_count,
            'is_close_call': self.is_close_call,
            'data_reliability': self.data_reliability,
            'priority_axis': self.priority_axis,
        }


def build_explanation_context(decision: Decision, max_fragments: int = 5) -> ExplanationContext:
    """Collect the neutral facts for one decision."""
    result = decision.result
    breakdown = result.breakdown

    top_fragments: List[Tuple[str, str]] = []
    is_close_call = None
    reliability = None
    if breakdown is not None:
        top_fragments = [(c.fragment_summary, c.favored_option.value)
                         for c in breakdown.fit.top_contributions[:max_fragments]]
        is_close_call = breakdown.fit.is_close_call
        reliability = breakdown.regret.data_reliability.value

    return ExplanationContext(
        decision_id=decision.id,
        title=decision.title,
        option_a=decision.option_a,
        option_b=decision.option_b,
        probability_a=result.probability_a,
        probability_b=result.probability_b,
        regret_risk_a=result.regret_risk_a,
        regret_risk_b=result.regret_risk_b,
        regret_level_a=result.regret_level_a.value,
        regret_level_b=result.regret_level_b.value,
        value_alignment={axis.key: value for axis, value in result.value_alignment.items()},
        top_fragments=tuple(top_fragments),
        evidence_count=len(result.evidence_fragment_ids),
        is_close_call=is_close_call,
        data_reliability=reliability,
        priority_axis=decision.priority_axis.display_name if decision.priority_axis else None,
    )


class ExplanationService:
    """Generates an explanation once per decision and caches it."""

    def __init__(self, decision_store: DecisionStore, explanation_port: ExplanationPort):
        self.decision_store = decision_store
        self.explanation_port = explanation_port

    async def explain(self, user_id: str, decision_id: str) -> DecisionExplanation:
        """
        Cached explanation for a decision, generated on first request.

        Raises:
            DecisionNotFoundError: missing, or owned by another user
        """
        decision = await self.decision_store.get(decision_id)
        if decision is None or decision.user_id != user_id:
            raise DecisionNotFoundError(decision_id)
        if decision.explanation is not None:
            return decision.explanation

        context = build_explanation_context(decision)
        explanation = await self.explanation_port.generate(context)
        await self.decision_store.save(decision.with_explanation(explanation))
        logger.info(f"Explanation generated for decision {decision_id}")
        return explanation


# =============================================================================
# OpenAI-backed explanation generation
# =============================================================================

SYSTEM_PROMPT = """You explain the output of a decision projection engine.

STRICT RULES:
1. NEVER recommend, suggest, or advise either option
2. NEVER use phrases like "you should", "I recommend", "better option"
3. NEVER judge the user's values or emotions
4. ONLY explain why the calculation produced these numbers
5. ONLY summarize the evidence fragments you are given
6. ALWAYS use neutral, descriptive language

You translate calculations into readable prose. The user makes the decision."""

# Phrases that turn a description into advice
PRESCRIPTIVE_PHRASES = (
    "you should",
    "i recommend",
    "i would recommend",
    "i suggest",
    "better option",
    "better choice",
    "the right choice",
)

_SECTION_PATTERN = r"\[{name}\]\s*(.+?)(?=\n\s*\[|\Z)"


def build_explanation_prompt(context: ExplanationContext) -> str:
    """User prompt listing the facts; the model only sees what the context holds."""
    lines = [
        "Explain the following decision projection. Do not recommend or advise.",
        "",
        f"Decision: {context.title}",
        f"Option A: {context.option_a}",
        f"Option B: {context.option_b}",
        "",
        "Results:",
        f"- Fit probability A: {context.probability_a:.0%}",
        f"- Fit probability B: {context.probability_b:.0%}",
        f"- Regret risk A: {context.regret_risk_a:.0%} ({context.regret_level_a})",
        f"- Regret risk B: {context.regret_risk_b:.0%} ({context.regret_level_b})",
    ]
    if context.is_close_call:
        lines.append("- The options are a close call")
    if context.data_reliability:
        lines.append(f"- Data reliability: {context.data_reliability}")
    if context.priority_axis:
        lines.append(f"- Priority value: {context.priority_axis}")

    if context.top_fragments:
        lines += ["", "Evidence fragments (past thoughts):"]
        lines += [f"  {i}. \"{summary}\" (leans toward option {favors})"
                  for i, (summary, favors) in enumerate(context.top_fragments, 1)]

    if context.value_alignment:
        lines += ["", "Value alignment (0.5 is neutral, above favors A, below favors B):"]
        lines += [f"  - {key}: {value:.2f}" for key, value in sorted(context.value_alignment.items())]

    lines += [
        "",
        "Answer in this format:",
        "[Summary]",
        "(2-3 sentences on why the results came out this way)",
        "",
        "[Evidence]",
        "(1-2 sentences on what the evidence fragments have in common)",
        "",
        "[Values]",
        "(1-2 sentences on the values this decision touches)",
    ]
    return "\n".join(lines)


def _section(response: str, name: str) -> Optional[str]:
    match = re.search(_SECTION_PATTERN.format(name=name), response, re.DOTALL)
    if match is None:
        return None
    text = match.group(1).strip()
    return text or None


def is_prescriptive(text: str) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in PRESCRIPTIVE_PHRASES)


def parse_explanation_response(response: str) -> DecisionExplanation:
    """
    Split a [Summary]/[Evidence]/[Values] response into a DecisionExplanation.

    Missing sections fall back to fixed text; a response without a Summary
    section uses its first 200 characters.
    """
    summary = _section(response, "Summary") or response.strip()[:200]
    return DecisionExplanation(
        summary=summary,
        evidence_summary=_section(response, "Evidence")
        or "Computed from similarity to past thought fragments.",
        value_summary=_section(response, "Values")
        or "No value information could be summarized.",
    )


def default_explanation(context: ExplanationContext) -> DecisionExplanation:
    """Fixed, number-only explanation used whenever generation fails."""
    return DecisionExplanation(
        summary=(f"This result was computed from {context.evidence_count} past thought fragments. "
                 f"Option A has a fit probability of {context.probability_a:.0%}, "
                 f"option B {context.probability_b:.0%}."),
        evidence_summary="Analyzed by similarity to previously recorded thought fragments.",
        value_summary="Value alignment is descriptive and not summarized here.",
    )


class OpenAIExplanationProvider(ExplanationPort):
    """
    Chat-completion explanation generator with guardrails.

    Never raises on generation problems: API errors, timeouts, empty
    responses and responses that read as advice all yield
    default_explanation(context).
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[Any] = None,
        config: Optional[ProjectionConfig] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.config = config or default_config
        self.model = model or self.config.EXPLANATION_MODEL
        self.system_prompt = system_prompt
        if client is not None:
            self.client = client
            return

        if not OPENAI_AVAILABLE:
            raise ImportError("openai package required")

        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY required")

        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        )
        logger.info(f"OpenAIExplanationProvider initialized: {self.model}")

    async def generate(self, context: ExplanationContext) -> DecisionExplanation:
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": self.system_prompt},
                        {"role": "user", "content": build_explanation_prompt(context)},
                    ],
                    max_tokens=self.config.EXPLANATION_MAX_TOKENS,
                    temperature=0.3,
                ),
                timeout=self.config.EXPLANATION_TIMEOUT,
            )
            content = response.choices[0].message.content or ""
        except asyncio.TimeoutError:
            logger.warning(f"Explanation timed out after {self.config.EXPLANATION_TIMEOUT}s "
                           f"for {context.decision_id}, using default")
            return default_explanation(context)
        except Exception as e:
            logger.warning(f"Explanation failed for {context.decision_id}, using default: {e}")
            return default_explanation(context)

        if not content.strip():
            logger.warning(f"Empty explanation for {context.decision_id}, using default")
            return default_explanation(context)
        if is_prescriptive(content):
            logger.warning(f"Prescriptive explanation rejected for {context.decision_id}")
            return default_explanation(context)
        return parse_explanation_response(content)
