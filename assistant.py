"""Advisory assistant backed by the Gemini ``generateContent`` REST API.

The assistant only reads snapshots of the catalog and the sales history.
Any failure (no API key, transport error, unexpected payload) degrades to
a fixed apology for free-text answers and to an empty suggestion list for
restocking advice, so it can never hold up catalog edits or checkout.
"""
import json
import logging
import os
from typing import List

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-2.5-flash')
ASSISTANT_TIMEOUT = float(os.environ.get('ASSISTANT_TIMEOUT', '20'))

FALLBACK_ANSWER = "Sorry, I cannot process your request right now."

SUGGESTION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "suggestions": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "productName": {"type": "STRING"},
                    "reason": {"type": "STRING"},
                    "recommendedQuantity": {"type": "NUMBER"},
                },
                "required": ["productName", "reason", "recommendedQuantity"],
            },
        }
    },
    "required": ["suggestions"],
}


class StockSuggestion(BaseModel):
    model_config = ConfigDict(strict=True, frozen=True, extra='ignore', populate_by_name=True)

    product_name: str = Field(alias='productName', min_length=1)
    reason: str
    recommended_quantity: float = Field(alias='recommendedQuantity', ge=0)


class SuggestionResponse(BaseModel):
    model_config = ConfigDict(strict=True, extra='ignore')

    suggestions: List[StockSuggestion]


class AssistantError(Exception):
    """The remote service could not be reached or answered with an unusable payload."""


def default_api_key():
    return os.environ.get('GEMINI_API_KEY') or os.environ.get('API_KEY') or ''


class AdvisoryAssistant:

    def __init__(self, api_key=None, model=GEMINI_MODEL, timeout=ASSISTANT_TIMEOUT, session=None):
        self.api_key = default_api_key() if api_key is None else api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def available(self):
        return bool(self.api_key)

    def _generate(self, prompt, generation_config=None):
        """POST one prompt and return the text of the first candidate."""
        if not self.available:
            raise AssistantError("No API key configured")
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        if generation_config:
            body["generationConfig"] = generation_config
        try:
            response = self.session.post(
                GEMINI_API_URL.format(model=self.model),
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise AssistantError(f"Request failed: {e}") from e
        except ValueError as e:
            raise AssistantError(f"Response is not JSON: {e}") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise AssistantError(f"Unexpected response shape: {e}") from e
        if not text.strip():
            raise AssistantError("Empty response")
        return text

    def ask(self, products, question):
        """Free-text answer about the inventory; FALLBACK_ANSWER on any failure."""
        inventory = json.dumps([p.to_dict() for p in products], ensure_ascii=False)
        prompt = (
            f"Here is the current inventory of the shop: {inventory}.\n"
            f"The user asks: \"{question}\".\n"
            "Answer concisely and professionally."
        )
        try:
            return self._generate(prompt).strip()
        except AssistantError as e:
            logger.warning("Assistant answer unavailable: %s", e)
            return FALLBACK_ANSWER

    def suggest_restock(self, products, sales):
        """Validated restocking suggestions, or [] when none can be obtained."""
        inventory = json.dumps([p.to_dict() for p in products], ensure_ascii=False)
        history = json.dumps([s.to_dict() for s in sales], ensure_ascii=False)
        prompt = (
            "Analyse the inventory and the sales to suggest restocking.\n"
            f"Inventory: {inventory}.\n"
            f"Sales: {history}.\n"
            "Give your recommendations as JSON."
        )
        config = {"responseMimeType": "application/json", "responseSchema": SUGGESTION_SCHEMA}
        try:
            text = self._generate(prompt, config)
        except AssistantError as e:
            logger.warning("Restock suggestions unavailable: %s", e)
            return []
        return parse_suggestions(text)


def parse_suggestions(text):
    """Validate a JSON suggestion payload; a malformed payload yields []."""
    try:
        return list(SuggestionResponse.model_validate_json(text).suggestions)
    except ValidationError as e:
        logger.warning("Rejected malformed suggestion payload: %d error(s)", e.error_count())
        return []
