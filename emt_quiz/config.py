from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

BUNDLED_KNOWLEDGE_FILE = Path(__file__).resolve().parent / "data" / "emt_knowledge_base.md"

DEFAULTS = {
    "llm_provider": "gemini",
    "llm_model": "gemini-2.5-flash",
    "ollama_url": "http://localhost:11434",
    "llm_thinking": False,
    "db_path": "quiz.db",
    "knowledge_file": "",
    "question_counts": [5, 10, 15, 20],
    "default_question_count": 5,
    "default_theme": "dark",
}


@dataclass
class Settings:
    llm_provider: str = DEFAULTS["llm_provider"]
    llm_model: str = DEFAULTS["llm_model"]
    ollama_url: str = DEFAULTS["ollama_url"]
    llm_thinking: bool = DEFAULTS["llm_thinking"]
    db_path: str = DEFAULTS["db_path"]
    knowledge_file: str = DEFAULTS["knowledge_file"]
    question_counts: list[int] = field(default_factory=lambda: list(DEFAULTS["question_counts"]))
    default_question_count: int = DEFAULTS["default_question_count"]
    default_theme: str = DEFAULTS["default_theme"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    @property
    def knowledge_full_path(self) -> Path:
        if self.knowledge_file:
            return self.project_root / self.knowledge_file
        return BUNDLED_KNOWLEDGE_FILE

    def to_dict(self) -> dict:
        return {
            "llm_provider": self.llm_provider,
            "llm_model": self.llm_model,
            "ollama_url": self.ollama_url,
            "llm_thinking": self.llm_thinking,
            "db_path": self.db_path,
            "knowledge_file": self.knowledge_file,
            "question_counts": self.question_counts,
            "default_question_count": self.default_question_count,
            "default_theme": self.default_theme,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
