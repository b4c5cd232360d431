"""Tests for configuration loading and saving."""
from __future__ import annotations

import json
from unittest.mock import patch

from emt_quiz.config import BUNDLED_KNOWLEDGE_FILE, DEFAULTS, Settings, load_settings, save_settings


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.llm_provider == "gemini"
        assert s.llm_model == "gemini-2.5-flash"
        assert s.question_counts == [5, 10, 15, 20]
        assert s.default_question_count == 5
        assert s.default_theme == "dark"

    def test_to_dict(self):
        d = Settings().to_dict()
        assert d["llm_provider"] == "gemini"
        assert len(d) == 9  # all fields present
        assert d == DEFAULTS

    def test_question_counts_not_shared(self):
        a, b = Settings(), Settings()
        a.question_counts.append(25)
        assert b.question_counts == [5, 10, 15, 20]

    def test_bundled_knowledge_file(self):
        s = Settings()
        assert s.knowledge_full_path == BUNDLED_KNOWLEDGE_FILE
        assert BUNDLED_KNOWLEDGE_FILE.exists()

    def test_custom_knowledge_file_relative_to_root(self):
        s = Settings(knowledge_file="notes/kb.md")
        assert s.knowledge_full_path == s.project_root / "notes" / "kb.md"

    def test_db_full_path(self):
        s = Settings(db_path="other.db")
        assert s.db_full_path == s.project_root / "other.db"


class TestLoadSaveSettings:
    def test_load_missing_file(self, tmp_path):
        with patch("emt_quiz.config.CONFIG_PATH", tmp_path / "config.json"):
            s = load_settings()
        assert s == Settings()

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "config.json"
        with patch("emt_quiz.config.CONFIG_PATH", path):
            save_settings(Settings(llm_provider="ollama", llm_model="qwen3:8b", default_theme="light"))
            s = load_settings()
        assert s.llm_provider == "ollama"
        assert s.llm_model == "qwen3:8b"
        assert s.default_theme == "light"

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"llm_provider": "openai", "window_width": 1200}))
        with patch("emt_quiz.config.CONFIG_PATH", path):
            s = load_settings()
        assert s.llm_provider == "openai"
        assert not hasattr(s, "window_width")
