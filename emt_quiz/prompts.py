"""Prompt templates for question generation and answer explanations."""
from __future__ import annotations

from emt_quiz.models import KNOWLEDGE_BASED, KnowledgeTopic, Question

QUESTION_TYPE_INSTRUCTIONS = {
    KNOWLEDGE_BASED: (
        "The questions should be straightforward, knowledge-based questions, testing basic "
        "definitions, normal ranges, and direct facts from the text. Avoid complex scenarios."
    ),
    "Scenario-Based": (
        "The questions should be complex, scenario-based problems that require critical "
        "thinking and application of knowledge to a situation. Avoid simple definition questions."
    ),
}

DIFFICULTY_INSTRUCTION = (
    'The questions must be at a "{difficulty}" difficulty level. An easy question has obvious '
    "correct answers and distractors. A hard question requires deeper analysis, has subtle "
    "distractors, or combines multiple concepts."
)

COVERAGE_ALL_TOPICS = (
    "There are at least as many questions as topics, so every single selected topic must be "
    "represented in the quiz at least once."
)

COVERAGE_FEWER_QUESTIONS = (
    "There are fewer questions than topics, so spread the questions over as many different "
    "topics as possible."
)

QUIZ_PROMPT = """\
You are an expert EMT quiz generator. Your task is to create a set of multiple-choice \
questions based on the provided EMT knowledge base.

**Instructions:**
1.  **Total Questions:** Generate exactly {count} questions.
2.  **Question Type:** The questions must be: **{question_type}**.
    - {question_type_instruction}
3.  **Difficulty Level:** The questions must be: **{difficulty}**.
    - {difficulty_instruction}
4.  **Topic Coverage:** This is crucial. Distribute the {count} questions as evenly as \
possible across all the provided topics: [{topic_names}]. {coverage_instruction}
5.  **Question Format:** Each question must have exactly 4 answer options, and only one \
option can be correct.
{exclusion_section}
**EMT Knowledge Base:**
{knowledge_context}
"""

EXCLUSION_DIRECTIVE = """\
6.  **Avoid Repetition:** The user has just answered a quiz. Generate a completely new set \
of questions that are substantially different from the following previous ones and cover \
different aspects of the topics:
{previous_questions}
"""

RETRY_FEEDBACK = """

Your previous response could not be used: {reason}
Respond with ONLY a JSON object of the form {{"questions": [{{"questionText": "...", \
"options": [{{"text": "...", "isCorrect": true}}, ...]}}]}}."""

EXPLANATION_PROMPT = """\
You are an expert EMT instructor. Based on the provided EMT knowledge base, explain the \
answer to the following quiz question.

**Knowledge Base Context:**
{knowledge_context}

**Quiz Question:**
"{question_text}"

**Options:**
{options}

**The Correct Answer is:**
"{correct_answer}"

**The student answered:**
"{user_answer}"

Please provide a clear and concise explanation for why the correct answer is right. If the \
student's answer was incorrect, also explain why their choice was wrong. Structure the \
explanation for easy learning.
"""

QUESTIONS_SCHEMA = {
    "type": "object",
    "properties": {
        "questions": {
            "type": "array",
            "description": "An array of quiz questions.",
            "items": {
                "type": "object",
                "properties": {
                    "questionText": {
                        "type": "string",
                        "description": "The text of the question.",
                    },
                    "options": {
                        "type": "array",
                        "description": "An array of 4 possible answers.",
                        "items": {
                            "type": "object",
                            "properties": {
                                "text": {
                                    "type": "string",
                                    "description": "The answer option text.",
                                },
                                "isCorrect": {
                                    "type": "boolean",
                                    "description": "True if this is the correct answer, false otherwise.",
                                },
                            },
                            "required": ["text", "isCorrect"],
                        },
                    },
                },
                "required": ["questionText", "options"],
            },
        },
    },
    "required": ["questions"],
}


def format_knowledge_context(topics: list[KnowledgeTopic]) -> str:
    return "\n\n".join(f"Topic: {t.topic}\n---\n{t.content}\n---" for t in topics)


def format_previous_questions(questions) -> str:
    return "\n".join(f'    - "{q.question_text}"' for q in questions)


def format_coverage(count: int, topic_count: int) -> str:
    if count >= topic_count:
        return COVERAGE_ALL_TOPICS
    return COVERAGE_FEWER_QUESTIONS


def format_options(question: Question) -> str:
    return "\n".join(f"- {o.text}" for o in question.options)
