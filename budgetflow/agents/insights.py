"""
AI Insight Agent

Asks Gemini for a few short, actionable observations about a user's
transactions.

BOUNDARIES:
- The model only ever sees a small projection of the transactions
  (date, amount, type, category, note, payment method), capped at 50 rows
- The agent never raises to the caller: an empty answer or any failure
  collapses to a fixed placeholder string
- Nothing the model says is written back to the ledger
"""

import json
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel

from budgetflow.config import GeminiSettings, get_settings


logger = structlog.get_logger(__name__)

EMPTY_RESPONSE_MESSAGE = "Could not generate insights at this time."
UNAVAILABLE_MESSAGE = (
    "AI Insights are currently unavailable. Please check your API configuration."
)

MAX_SAMPLE_SIZE = 50

PROMPT_TEMPLATE = (
    "Analyze the following list of financial transactions and provide 3 specific, "
    "brief, and actionable insights or trends. Focus on spending habits, saving "
    "opportunities, and check specifically for any high cash spending patterns. "
    "Keep the tone encouraging and professional. Format the response as a simple "
    "markdown list. Transactions: {transactions}"
)


class InsightResult(BaseModel):
    """Text shown to the user, and whether it is a placeholder."""

    text: str
    used_fallback: bool = False
    error: Optional[str] = None


class InsightAgent:
    """
    Generates spending insights with Gemini.

    The model is configured lazily on first use so that the dashboard can
    load without a Gemini key. Tests pass in any object with an async
    `generate_content_async(prompt)` method.
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
    ):
        self._model = model
        self._settings = settings

    def _get_model(self) -> Any:
        """Configure Google Generative AI on first use."""
        if self._model is None:
            settings = self._settings or get_settings().gemini
            genai.configure(api_key=settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=settings.model_name,
                generation_config={
                    "temperature": settings.temperature,
                    "max_output_tokens": settings.max_tokens,
                },
            )
        return self._model

    @staticmethod
    def build_prompt(sample: list[dict]) -> str:
        return PROMPT_TEMPLATE.format(
            transactions=json.dumps(sample[:MAX_SAMPLE_SIZE])
        )

    async def analyze(self, sample: list[dict]) -> InsightResult:
        """
        Generate insights for an already projected transaction sample.

        Resolves exactly once with either the model's text or a placeholder.
        """
        try:
            model = self._get_model()
            response = await model.generate_content_async(self.build_prompt(sample))
            text = (response.text or "").strip()
        except Exception as e:
            logger.warning("insight_generation_failed", error=str(e))
            return InsightResult(text=UNAVAILABLE_MESSAGE, used_fallback=True, error=str(e))

        if not text:
            return InsightResult(text=EMPTY_RESPONSE_MESSAGE, used_fallback=True)
        return InsightResult(text=text)
