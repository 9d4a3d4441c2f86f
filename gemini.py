"""
Gemini text generation over the public REST endpoint.

Construct one GeminiClient and pass it to whatever needs it; there is no shared
module-level instance.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 1024,
}

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

SUPPORT_PROMPT = """You are a compassionate and culturally-aware mental health AI assistant designed specifically for Indian youth. Your role is to provide supportive, non-judgmental, and helpful responses while being mindful of cultural sensitivities.

Key guidelines:
- Be empathetic and understanding
- Use both English and Hindi when appropriate
- Be culturally sensitive to Indian family dynamics, academic pressure, and social expectations
- Provide practical, actionable advice
- Never provide medical diagnosis or replace professional therapy
- Encourage seeking professional help when needed
- Be supportive of mental health awareness and reduce stigma
- Use a warm, friendly tone with appropriate emojis

Context: {context}

User message: {message}"""

CRISIS_PROMPT = """You are a crisis support AI assistant. The user may be experiencing a mental health crisis. Respond with:

1. Immediate validation and support
2. Safety assessment
3. Crisis resources (Indian helplines)
4. Encouragement to seek immediate help
5. Grounding techniques if appropriate

Be extremely supportive, non-judgmental, and prioritize safety. Always encourage contacting emergency services or crisis helplines.

User message: {message}"""

INSIGHTS_PROMPT = """Analyze this mood tracking data and provide insights:

Mood Data: {data}

Provide:
1. Patterns you notice
2. Positive trends
3. Areas of concern
4. Suggestions for improvement
5. Encouragement and support

Be supportive, culturally aware, and helpful. Use both English and Hindi."""


class GeminiError(RuntimeError):
    """The generation request failed or produced no text."""


def user_message(text: str) -> Dict[str, Any]:
    return {"role": "user", "parts": [{"text": text}]}


class GeminiClient:
    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", session: Optional[requests.Session] = None, timeout: float = 30):
        if not api_key:
            raise ValueError("A Gemini API key is required")
        self.api_key = api_key
        self.model = model
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def url(self) -> str:
        return f"{API_BASE}/{self.model}:generateContent"

    def build_payload(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "contents": [
                {"role": "user" if m.get("role") == "user" else "model", "parts": m["parts"]}
                for m in messages
            ],
            "generationConfig": GENERATION_CONFIG,
            "safetySettings": SAFETY_SETTINGS,
        }

    def generate_response(self, messages: List[Dict[str, Any]]) -> str:
        """Send a conversation and return the first candidate's text."""
        try:
            response = self.session.post(
                self.url,
                params={"key": self.api_key},
                json=self.build_payload(messages),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Gemini request failed: %s", e)
            raise GeminiError(f"Gemini request failed: {e}") from e

        if not response.ok:
            logger.error("Gemini API error: %s %s", response.status_code, response.reason)
            raise GeminiError(f"Gemini API error: {response.status_code} {response.reason}")

        data = response.json()
        candidates = data.get("candidates") or []
        if not candidates:
            raise GeminiError("No response generated from Gemini API")
        try:
            return candidates[0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise GeminiError("Gemini response had no text") from e

    def generate_support_response(self, message: str, context: Optional[str] = None) -> str:
        prompt = SUPPORT_PROMPT.format(context=context or "General mental health support", message=message)
        return self.generate_response([user_message(prompt)])

    def generate_crisis_response(self, message: str) -> str:
        return self.generate_response([user_message(CRISIS_PROMPT.format(message=message))])

    def generate_mood_insights(self, mood_data: List[Dict[str, Any]]) -> str:
        data = json.dumps(mood_data, indent=2, default=str)
        return self.generate_response([user_message(INSIGHTS_PROMPT.format(data=data))])
