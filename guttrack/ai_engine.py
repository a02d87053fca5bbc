# guttrack/ai_engine.py
import json
import logging
import time
from datetime import datetime
from typing import Any, List, Optional

from openai import AsyncOpenAI, OpenAIError

from .config import Config

logger = logging.getLogger(__name__)

_client: Optional[AsyncOpenAI] = None


class AIProviderError(Exception):
    """The analysis provider could not produce a usable answer."""


class AIUnavailableError(AIProviderError):
    pass


class AIResponseError(AIProviderError):
    pass


def is_ai_available() -> bool:
    key = Config.OPENROUTER_API_KEY
    return bool(key) and key != "DEMO_KEY_PLACEHOLDER"


def get_client() -> AsyncOpenAI:
    global _client
    if not is_ai_available():
        raise AIUnavailableError("OPENROUTER_API_KEY is not configured")
    if _client is None:
        # No retries: a failed call falls back or surfaces immediately
        _client = AsyncOpenAI(
            base_url=Config.AI_BASE_URL,
            api_key=Config.OPENROUTER_API_KEY,
            timeout=Config.AI_TIMEOUT_SECONDS,
            max_retries=0,
            default_headers={
                "HTTP-Referer": Config.SITE_URL,
                "X-Title": Config.APP_NAME,
            },
        )
    return _client


async def request_json(prompt: str, *, image_base64: str = None, temperature: float = 0.3, max_tokens: int = 2000) -> Any:
    """
    Sends one prompt to the provider and returns the decoded JSON payload.
    Raises AIProviderError on any failure.
    """
    client = get_client()
    if image_base64:
        model = Config.VISION_MODEL_ID
        messages = [
            {"role": "system", "content": prompt},
            {"role": "user", "content": [
                {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_base64}"}}
            ]},
        ]
    else:
        model = Config.MODEL_ID
        messages = [{"role": "user", "content": prompt}]

    start_time = time.time()
    try:
        response = await client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            extra_body={"include_usage": True},
        )
    except OpenAIError as e:
        logger.warning("❌ Provider error after %.2fs: %s", time.time() - start_time, e)
        raise AIProviderError(str(e)) from e

    logger.info("🤖 %s answered in %.2fs (cost %.5f)", model, time.time() - start_time, _extract_cost(response))
    if not response.choices:
        raise AIResponseError("Provider returned no choices")
    return _clean_json(response.choices[0].message.content or "")


async def analyze_food_entry(description: str) -> dict:
    prompt = f"""
Analyze this food entry for a gut patient:

Food Description: "{description}"

Provide analysis including:
1. Potential warning flags (e.g., "gas-producing", "high-fiber", "spicy")
2. Risk level assessment for gut patients
3. Confidence in assessment (0-1)
4. Specific insights and recommendations

Return ONLY valid JSON:
{{
  "flags": ["flag1", "flag2"],
  "riskLevel": "low|medium|high",
  "confidence": 0.85,
  "insights": ["insight1", "insight2"]
}}

Focus on gut-specific considerations like gas production, digestive comfort, and stoma output.
"""
    return await request_json(prompt, temperature=0.2)


async def analyze_symptom_entry(description: str) -> dict:
    prompt = f"""
Analyze this symptom entry for a gut patient:

Symptom Description: "{description}"

Provide analysis including:
1. Symptom classification flags
2. Severity assessment
3. Confidence in assessment (0-1)
4. Insights and recommendations

Return ONLY valid JSON:
{{
  "flags": ["flag1", "flag2"],
  "severity": "low|medium|high",
  "confidence": 0.85,
  "insights": ["insight1", "insight2"]
}}

Focus on gut-specific symptoms and their potential causes.
"""
    return await request_json(prompt, temperature=0.2)


async def analyze_ingredients(ingredients: List[str]) -> dict:
    prompt = f"""
As a specialized gut health AI, analyze these food ingredients for someone with a colostomy:

Ingredients: {", ".join(ingredients)}

For each ingredient, provide the gut behavior classification, risk level, effects on gas
production and metabolism, recommendations and safe alternatives if problematic.
Then provide an overall meal analysis.

Return ONLY valid JSON:
{{
  "ingredients": [
    {{
      "ingredient": "ingredient name",
      "category": "food category",
      "gutBehavior": "gas-producing|metabolism-boosting|gut-friendly|potentially-problematic",
      "riskLevel": "low|medium|high",
      "description": "detailed description of effects",
      "recommendations": ["recommendation 1"],
      "alternatives": ["alternative 1"]
    }}
  ],
  "overallRisk": "low|medium|high",
  "gasProducingScore": <0-10>,
  "metabolismScore": <0-10>,
  "recommendations": ["overall recommendation 1"],
  "timingAdvice": "when to eat this meal",
  "portionAdvice": "portion size recommendations",
  "summary": "brief summary"
}}
"""
    return await request_json(prompt)


async def analyze_food_image(image_base64: str) -> dict:
    prompt = """
Analyze this food image for someone with a colostomy. Identify all visible foods and
ingredients, likely hidden ingredients, your confidence (0-1), a gut health assessment per
ingredient, and suggestions. Focus on gas production, digestive comfort, output consistency
and metabolic impact.

Return ONLY valid JSON:
{
  "detectedFoods": ["food1", "food2"],
  "confidence": 0.85,
  "ingredients": [
    {"ingredient": "name", "category": "category", "gutBehavior": "gas-producing|metabolism-boosting|gut-friendly|potentially-problematic",
     "riskLevel": "low|medium|high", "description": "effects", "recommendations": [], "alternatives": []}
  ],
  "suggestions": ["suggestion1", "suggestion2"]
}
"""
    return await request_json(prompt, image_base64=image_base64)


async def analyze_symptoms(symptoms: List[str], recent_meals: list, outputs: list) -> dict:
    prompt = f"""
Analyze these symptoms for a gut patient:

Symptoms: {", ".join(symptoms)}
Recent Meals: {json.dumps(recent_meals, default=str)}
Recent Outputs: {json.dumps(outputs, default=str)}

Return ONLY valid JSON:
{{
  "analysis": "detailed analysis",
  "possibleCauses": ["cause1", "cause2"],
  "recommendations": ["rec1", "rec2"],
  "severity": "low|medium|high"
}}

Focus on gut-specific considerations and practical advice.
"""
    return await request_json(prompt)


async def generate_meal_plan(duration: int, dietary_restrictions: List[str], goals: List[str], user_history: Any) -> dict:
    prompt = f"""
Create a {duration}-day meal plan for a gut patient.

Dietary Restrictions: {", ".join(dietary_restrictions) or "none"}
Goals: {", ".join(goals) or "comfortable digestion"}
User History: {json.dumps(user_history, default=str)}

For each day provide 3-4 meals with specific ingredients, benefits and a risk level, plus
daily notes. Minimize gas production and support healthy digestion.

Return ONLY valid JSON:
{{
  "days": [
    {{
      "date": "YYYY-MM-DD",
      "meals": [
        {{"type": "breakfast", "name": "meal name", "ingredients": ["..."], "benefits": ["..."], "riskLevel": "low|medium|high"}}
      ],
      "notes": ["..."]
    }}
  ],
  "tips": ["..."]
}}
"""
    return await request_json(prompt, max_tokens=4000)


async def get_personalized_recommendations(user_history: Any, current_time: datetime, preferences: Any) -> list:
    prompt = f"""
Based on this gut patient's history and the current time, provide personalized meal recommendations:

User History: {json.dumps(user_history, default=str)}
Current Time: {current_time.isoformat()}
Preferences: {json.dumps(preferences, default=str)}

Consider recent gas episodes, successful meals, time of day, previous reactions and the
irrigation schedule.

Return ONLY a JSON array of 5-7 specific, actionable recommendation strings.
"""
    return await request_json(prompt, temperature=0.5)


async def extract_multi_category(description: str, base_timestamp: datetime) -> dict:
    prompt = f"""
You are an expert gut management assistant. Parse this natural language description into
separate, detailed health entries for a stoma tracker app.

User Description: "{description}"
Base Timestamp: {base_timestamp.isoformat()}

INSTRUCTIONS:
1. SEPARATE FOOD FROM DRINKS - solid food and beverages are always separate entries.
2. CATEGORIZE MEALS BY TIME OF DAY:
   - 05:00-10:00 = breakfast
   - 10:00-12:00 = snack
   - 12:00-16:00 = lunch
   - 16:00-19:00 = snack
   - 19:00-22:00 = dinner
   - 22:00+ = snack
3. Resolve relative times ("this morning", "an hour later") against the Base Timestamp.
   If no time is given, use the Base Timestamp.
4. Only include categories that the description actually mentions.

CATEGORIES (use exactly these "type" values):
- breakfast, lunch, dinner, snack: ingredients, quantities, cooking method
- drinks: beverage, quantity
- gas: intensity 1-10, duration in minutes, triggers
- output: volume in ml, consistency (liquid|soft|formed|hard), timing relative to meals
- irrigation: quality (excellent|good|fair|poor), completeness 1-10, comfort 1-10, duration, issues
- symptoms: symptom type (cramping|bloating|nausea|fatigue|pain|other), severity 1-10, location
- medication: names, dosages

Return ONLY valid JSON:
{{
  "entries": [
    {{
      "type": "breakfast",
      "description": "Two eggs scrambled in butter with multigrain toast",
      "timestamp": "2025-07-10T07:30:00",
      "confidence": 0.95,
      "details": {{"ingredients": ["eggs (2)", "butter", "multigrain toast (1 slice)"], "cookingMethod": "scrambled"}}
    }},
    {{
      "type": "gas",
      "description": "Gas about an hour after breakfast",
      "timestamp": "2025-07-10T08:30:00",
      "confidence": 0.8,
      "details": {{"intensity": 5, "duration": 20}}
    }}
  ],
  "summary": "one sentence summary of what was detected",
  "confidence": 0.9
}}

Use high confidence (0.9+) only when the details are very clear.
"""
    return await request_json(prompt, temperature=0.2, max_tokens=3000)


def _extract_cost(response) -> float:
    try:
        if hasattr(response, 'usage') and response.usage:
            usage_dict = response.usage.model_dump() if hasattr(response.usage, 'model_dump') else response.usage.__dict__
            return float(usage_dict.get('cost') or 0.0)
    except (TypeError, ValueError) as e:
        logger.debug("⚠️ Could not extract cost: %s", e)
    return 0.0


def _clean_json(text: str) -> Any:
    text = text.replace("```json", "").replace("```", "").strip()
    starts = [i for i in (text.find('{'), text.find('[')) if i != -1]
    if starts:
        start_idx = min(starts)
        closing = '}' if text[start_idx] == '{' else ']'
        end_idx = text.rfind(closing)
        if end_idx > start_idx:
            text = text[start_idx : end_idx + 1]

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise AIResponseError(f"Unparseable provider output: {text[:50]}...") from e
