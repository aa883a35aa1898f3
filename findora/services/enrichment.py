# file: findora/services/enrichment.py

import asyncio
import json
import logging
from typing import List, Optional, Sequence, Tuple

import google.generativeai as genai

from findora.models.place import Place

logger = logging.getLogger(__name__)

GENERATION_CONFIG = {
    "response_mime_type": "application/json",
    "temperature": 0.3,
    "max_output_tokens": 200,
}


def build_categorization_prompt(place: Place) -> str:
    return f"""
Analyze this place and provide a more specific category and relevant tags:

Name: {place.name}
Address: {place.address or 'N/A'}
Current Category: {place.category}
Types: {', '.join(place.types)}
Rating: {place.rating or 'N/A'}

Please respond with a JSON object containing:
1. "category": A more specific category (e.g., "Italian Restaurant", "Coffee Shop", "Fitness Center", "Electronics Store")
2. "tags": An array of 3-5 relevant tags (e.g., ["casual dining", "family-friendly", "takeout available"])

Keep the response concise and relevant to the place type.
"""


def parse_categorization(text: Optional[str]) -> Tuple[str, List[str]]:
    """
    Parses the model's reply into (category, tags).
    Raises ValueError when the reply is empty, not JSON, or missing either field.
    """
    if not text:
        raise ValueError("Empty response from text generation service")

    # Clean the response to ensure it's valid JSON
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    data = json.loads(cleaned.strip())
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

    category = data.get("category")
    tags = data.get("tags")
    if not isinstance(category, str) or not category.strip():
        raise ValueError("Response is missing 'category'")
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise ValueError("Response is missing 'tags'")
    return category.strip(), tags


class CategorizationEnricher:
    """
    Attaches an AI-derived category and tags to each place.

    Without a configured model this is a pass-through. With one, every place is
    categorized concurrently and any per-place failure falls back to the place's
    own category with no tags.
    """

    def __init__(
        self,
        api_key: str = "",
        model_name: str = "gemini-1.5-flash-latest",
        timeout: float = 15.0,
        model=None,
    ):
        self.timeout = timeout
        self.model = model
        if self.model is None and api_key:
            genai.configure(api_key=api_key)
            self.model = genai.GenerativeModel(model_name)
        if self.model is None:
            logger.warning("GOOGLE_GEMINI_API_KEY is not set; AI categorization is disabled.")

    @property
    def enabled(self) -> bool:
        return self.model is not None

    async def categorize_place(self, place: Place) -> Tuple[str, List[str]]:
        prompt = build_categorization_prompt(place)
        response = await asyncio.wait_for(
            self.model.generate_content_async(prompt, generation_config=GENERATION_CONFIG),
            timeout=self.timeout,
        )
        return parse_categorization(response.text)

    async def _enrich_one(self, place: Place) -> Place:
        try:
            category, tags = await self.categorize_place(place)
        except Exception as e:
            logger.warning(f"AI categorization failed for '{place.name}': {type(e).__name__}: {e}")
            return place.model_copy(update={"aiTags": []})
        return place.model_copy(update={"aiCategory": category, "aiTags": tags})

    async def enrich(self, places: Sequence[Place]) -> List[Place]:
        if not self.enabled:
            return list(places)
        # gather keeps input order regardless of completion order.
        return list(await asyncio.gather(*(self._enrich_one(place) for place in places)))
