"""
LLM enhancement layer - turns aggregated sources into a narrative forecast.
"""
import json
import logging
import time
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are Rainz, a friendly weather forecaster. You receive forecasts from "
    "several weather models for one location. Reply with a JSON object with "
    'keys "summary" (two or three sentences for the next 24 hours) and '
    '"insights" (a list of at most four short, practical tips). Do not invent '
    "numbers that are not in the data."
)


class LLMEnhancer:
    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4o-mini", timeout: float = 20.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    @property
    def llm_available(self) -> bool:
        return bool(self.api_key)

    def enhance(
        self,
        sources: List[Dict[str, Any]],
        aggregated: Dict[str, Any],
        location: str,
    ) -> Dict[str, Any]:
        """
        Produce the AI-enhanced forecast block.

        Falls back to a rule-based narrative when no LLM is configured or the
        call fails; this never raises for LLM problems.
        """
        agreement = aggregated.get("model_agreement", 0)
        narrative = None
        provider = "rules"

        if self.llm_available:
            try:
                narrative = self._call_openai(sources, aggregated, location)
                provider = "openai"
            except Exception as e:
                # Any SDK, network or parse failure degrades to the rule-based text
                logger.warning(f"LLM forecast failed, using rule-based summary: {e}")

        if narrative is None:
            narrative = self._rule_based_narrative(aggregated, location)

        return {
            "summary": narrative["summary"],
            "insights": narrative["insights"],
            "current": aggregated.get("current_weather", {}),
            "hourly": aggregated.get("hourly_forecast", []),
            "daily": aggregated.get("daily_forecast", []),
            "model_agreement": agreement,
            "confidence": self._calculate_confidence(len(sources), agreement),
            "provider": provider,
        }

    def _call_openai(
        self, sources: List[Dict[str, Any]], aggregated: Dict[str, Any], location: str
    ) -> Dict[str, Any]:
        """Make an OpenAI chat completion call and parse its JSON reply."""
        import openai

        client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout)
        payload = {
            "location": location,
            "aggregated": {
                "current": aggregated.get("current_weather"),
                "next_hours": aggregated.get("hourly_forecast", [])[:12],
                "next_days": aggregated.get("daily_forecast", [])[:5],
                "model_agreement": aggregated.get("model_agreement"),
            },
            "sources": [
                {
                    "name": s["source"],
                    "accuracy": s.get("accuracy"),
                    "current": s.get("current_weather"),
                }
                for s in sources
            ],
        }

        start_ms = int(time.time() * 1000)
        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": json.dumps(payload)},
            ],
            response_format={"type": "json_object"},
            max_tokens=600,
        )
        logger.info(
            f"LLM forecast for {location} completed",
            extra={"duration_ms": int(time.time() * 1000) - start_ms},
        )

        content = json.loads(response.choices[0].message.content)
        summary = content.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            raise ValueError("LLM reply has no summary")
        insights = content.get("insights") or []
        if not isinstance(insights, list):
            insights = [str(insights)]
        return {"summary": summary.strip(), "insights": [str(i) for i in insights][:4]}

    def _rule_based_narrative(self, aggregated: Dict[str, Any], location: str) -> Dict[str, Any]:
        current = aggregated.get("current_weather", {})
        daily = aggregated.get("daily_forecast", [])
        hourly = aggregated.get("hourly_forecast", [])

        condition = current.get("condition", "Unknown")
        temperature = current.get("temperature")
        summary_lines = []
        if temperature is not None:
            summary_lines.append(
                f"Currently {condition.lower()} and {temperature}°F in {location}."
            )
        else:
            summary_lines.append(f"Currently {condition.lower()} in {location}.")

        if daily:
            today = daily[0]
            if today.get("high_temp") is not None and today.get("low_temp") is not None:
                summary_lines.append(
                    f"Expect a high of {today['high_temp']}°F and a low of {today['low_temp']}°F."
                )

        insights = []
        rainy_hours = [h for h in hourly[:12] if (h.get("precipitation") or 0) >= 50]
        if rainy_hours:
            summary_lines.append(f"Rain is likely around {rainy_hours[0]['time']}.")
            insights.append("Bring an umbrella.")
        if (current.get("uv_index") or 0) >= 6:
            insights.append("UV is high; wear sunscreen.")
        if (current.get("wind_speed") or 0) >= 25:
            insights.append("Strong winds expected; secure loose objects.")
        if temperature is not None and temperature <= 32:
            insights.append("Freezing temperatures; watch for ice.")

        agreement = aggregated.get("model_agreement", 0)
        if agreement < 50:
            insights.append("Models disagree today; check back for updates.")

        return {"summary": " ".join(summary_lines), "insights": insights[:4]}

    @staticmethod
    def _calculate_confidence(source_count: int, agreement: int) -> float:
        """Calculate confidence score for the forecast."""
        confidence = 0.4  # Base confidence

        # More sources increase confidence
        if source_count >= 7:
            confidence += 0.2
        elif source_count >= 3:
            confidence += 0.1

        confidence += 0.4 * (agreement / 100)

        return round(min(confidence, 1.0), 2)
