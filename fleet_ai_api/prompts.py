import json
import logging
from pathlib import Path

logger = logging.getLogger("fleet_ai.prompts")

DEFAULT_SYSTEM_PROMPT = (
    "You are a fleet health assistant for a maintenance dashboard. "
    "Answer using only the vehicle and component data provided. "
    "If the data does not cover the question, say so briefly instead of guessing. "
    "Keep answers short and factual."
)

SUMMARY_INSTRUCTION = (
    "When the user asks for overall or squadron-level health, provide a concise "
    "squadron-level summary first using only the provided dataset. If the user later "
    "requests per-flight details, provide them on follow-up. Keep the initial reply "
    "short and factual."
)


class PromptLibrary:
    def __init__(self, prompts: dict[str, str] | None = None) -> None:
        self._prompts = dict(prompts or {})

    @classmethod
    def from_file(cls, path: str | Path) -> "PromptLibrary":
        path = Path(path)
        if not path.is_file():
            return cls()
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("prompts_file_unreadable path=%s error=%s", path, exc)
            return cls()
        if not isinstance(raw, dict):
            return cls()
        return cls({str(key): value for key, value in raw.items() if isinstance(value, str)})

    def resolve(self, prompt_id: str | None = None) -> str:
        if prompt_id and self._prompts.get(prompt_id):
            return self._prompts[prompt_id]
        return self._prompts.get("default") or DEFAULT_SYSTEM_PROMPT
