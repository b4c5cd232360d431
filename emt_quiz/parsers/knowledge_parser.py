"""Parse knowledge-base markdown and plain-text topic files into KnowledgeTopic objects.

Knowledge-base layout:
  # Title            (ignored)
  ---
  ## Topic name
  free-form reference text, kept verbatim
  ---
  ## Next topic
"""
from __future__ import annotations

import re
from pathlib import Path

from emt_quiz.errors import ValidationError
from emt_quiz.models import KnowledgeTopic


def parse_knowledge_file(path: Path) -> list[KnowledgeTopic]:
    text = path.read_text(encoding="utf-8")
    topics: list[KnowledgeTopic] = []
    current: str | None = None
    lines: list[str] = []

    def flush() -> None:
        if current is not None:
            content = "\n".join(lines).strip()
            if content:
                topics.append(KnowledgeTopic(topic=current, content=content))

    for line in text.splitlines():
        m = re.match(r"^## (.+)", line)
        if m:
            flush()
            current = m.group(1).strip()
            lines = []
            continue

        # Horizontal rule or top-level title ends the current topic body
        if line.strip() == "---" or line.startswith("# "):
            flush()
            current = None
            lines = []
            continue

        if current is not None:
            lines.append(line)

    flush()
    return topics


def read_topic_file(path: Path) -> KnowledgeTopic:
    """Read a user-supplied .txt file as a custom topic named after the file."""
    if path.suffix.lower() != ".txt":
        raise ValidationError("Please upload a .txt file.")
    content = path.read_text(encoding="utf-8", errors="replace")
    if not content.strip():
        raise ValidationError("The file appears to be empty or could not be read.")
    return KnowledgeTopic(topic=path.stem, content=content, is_custom=True)
