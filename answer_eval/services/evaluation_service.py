"""
Evaluation Service
Scores an extracted answer with the primary LLM, then the secondary one, then a
deterministic offline scorer, so every call ends with an evaluation.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from answer_eval.core.config import Settings
from answer_eval.services.llm_providers import (
    CompletionProvider,
    GeminiProvider,
    OpenAIProvider,
)

logger = logging.getLogger(__name__)

IMAGE_SEPARATOR = "\n\n--- Next Image ---\n\n"

DEFAULT_EVALUATION_FRAMEWORK = """Introduction:
- Is the introduction relevant, concise (20-30 words) and supported by facts or keywords?

Body:
- Does the body address the core demand of the question, explicit and implicit?
- Are the points valid, structured under headings, and substantiated with examples, data or reports?
- Is the presentation legible, with diagrams or maps where they help?

Conclusion:
- Is the conclusion balanced, forward-looking or suggestive, and concise?"""

SECTIONS = (
    "introduction",
    "body",
    "conclusion",
    "strengths",
    "weaknesses",
    "suggestions",
    "feedback",
    "comments",
    "remark",
)

_SECTION_HEADERS = {
    "introduction": r"introduction|intro",
    "body": r"body|body section|main body",
    "conclusion": r"conclusion|conclusion section",
    "strengths": r"strengths?",
    "weaknesses": r"weaknesses?|areas for improvement",
    "suggestions": r"suggestions?|recommendations?",
    "feedback": r"feedback|detailed feedback",
    "comments": r"comments?",
    "remark": r"remark|overall remark|summary",
}

_HEADER_PATTERNS = {
    section: re.compile(rf"^[#*_\s]*(?:{names})[*_\s]*(?::|$)\s*(.*)$", re.IGNORECASE)
    for section, names in _SECTION_HEADERS.items()
}

_SCORE_PATTERN = re.compile(
    r"^[#*_\s]*(?:(?:total|final|overall)\s+)?(?:score|marks awarded|marks)[*_\s]*[:\-]\s*\**\s*(\d+(?:\.\d+)?)",
    re.IGNORECASE | re.MULTILINE,
)
_RELEVANCY_PATTERN = re.compile(
    r"^[#*_\s]*(?:relevancy|relevance|accuracy)[*_\s]*[:\-]\s*\**\s*(\d+(?:\.\d+)?)",
    re.IGNORECASE | re.MULTILINE,
)
_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


@dataclass
class ParsedEvaluation:
    score: float
    feedback: str
    parsed_ok: bool
    relevancy: Optional[float] = None
    breakdown: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EvaluationResult:
    score: float
    max_score: float
    feedback: str
    breakdown: Dict[str, Any]
    source: str
    parsed_ok: bool = True


def _max_marks(question: Any, default_max_marks: int) -> float:
    return float(getattr(question, "max_marks", None) or default_max_marks)


def build_prompt(question: Any, extracted_texts: Sequence[str], *, default_max_marks: int = 10) -> str:
    """Deterministic scoring prompt; image texts are kept in image order."""
    max_marks = _max_marks(question, default_max_marks)
    marks_label = f"{max_marks:g}"
    framework = getattr(question, "evaluation_guideline", None) or DEFAULT_EVALUATION_FRAMEWORK
    word_limit = getattr(question, "word_limit", None)
    combined = IMAGE_SEPARATOR.join(t or "" for t in extracted_texts)

    return (
        "Please evaluate this student's answer to the given question using the "
        "following evaluation framework.\n\n"
        f"{framework}\n\n"
        f"QUESTION:\n{question.question_text}\n\n"
        f"MAXIMUM MARKS: {marks_label}\n"
        f"WORD LIMIT: {word_limit if word_limit else 'not specified'}\n\n"
        f"STUDENT'S ANSWER (extracted from images):\n{combined}\n\n"
        "Please use the exact section headers as shown below, and do not change "
        "their names or order.\n\n"
        "RELEVANCY: [Score out of 100 - How relevant is the answer to the question]\n"
        f"SCORE: [Score out of {marks_label}]\n\n"
        "Introduction:\n[Your analysis of the introduction]\n\n"
        "Body:\n[Your analysis of the body]\n\n"
        "Conclusion:\n[Your analysis of the conclusion]\n\n"
        "Strengths:\n[List 2-3 strengths]\n\n"
        "Weaknesses:\n[List 2-3 weaknesses]\n\n"
        "Suggestions:\n[List 2-3 suggestions]\n\n"
        "Feedback:\n[Overall feedback]\n\n"
        "Comments:\n[3-4 detailed comments (5-12 words each)]\n\n"
        "Remark:\n[1-2 line summary of the overall answer quality]\n"
    )


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _split_sections(lines: List[str]) -> Dict[str, List[str]]:
    sections: Dict[str, List[str]] = {name: [] for name in SECTIONS}
    current: Optional[str] = None
    for line in lines:
        if _SCORE_PATTERN.match(line) or _RELEVANCY_PATTERN.match(line):
            current = None
            continue
        for name, pattern in _HEADER_PATTERNS.items():
            match = pattern.match(line)
            if match:
                current = name
                rest = match.group(1).strip(" *_")
                if rest:
                    sections[name].append(rest)
                break
        else:
            if current:
                item = _BULLET.sub("", line).strip()
                if item and item not in sections[current]:
                    sections[current].append(item)
    return sections


def parse_evaluation_response(text: Any, max_score: float) -> ParsedEvaluation:
    """
    Tolerant parser for free-form model output.

    Never raises. When no score can be found the score is max_score / 2 and
    parsed_ok is False; feedback falls back to the raw response.
    """
    raw = text if isinstance(text, str) else ("" if text is None else str(text))
    raw = raw.strip()

    score_match = _SCORE_PATTERN.search(raw)
    if score_match:
        score = _clamp(float(score_match.group(1)), 0.0, max_score)
    else:
        score = max_score / 2

    relevancy_match = _RELEVANCY_PATTERN.search(raw)
    relevancy = (
        _clamp(float(relevancy_match.group(1)), 0.0, 100.0) if relevancy_match else None
    )

    lines = [line.strip() for line in raw.splitlines() if line.strip()]
    sections = _split_sections(lines)

    if sections["feedback"]:
        feedback = " ".join(sections["feedback"])
    elif sections["remark"]:
        feedback = " ".join(sections["remark"])
    else:
        feedback = raw or "No feedback provided by AI."

    breakdown = {
        "relevancy": relevancy,
        "analysis": {
            name: sections[name]
            for name in ("introduction", "body", "conclusion", "strengths", "weaknesses", "suggestions")
        },
        "comments": sections["comments"],
        "remark": " ".join(sections["remark"]),
    }
    return ParsedEvaluation(
        score=score,
        feedback=feedback,
        parsed_ok=score_match is not None,
        relevancy=relevancy,
        breakdown=breakdown,
    )


def _usable_texts(extracted_texts: Sequence[str]) -> List[str]:
    return [t for t in extracted_texts if t and t.strip()]


def mock_evaluate(
    question: Any,
    extracted_texts: Sequence[str],
    *,
    default_max_marks: int = 10,
) -> EvaluationResult:
    """
    Offline scorer used when no provider answered.

    The score depends only on how much of the word limit the answer covers:
    nothing readable scores 0, otherwise 40%..80% of max marks.
    """
    max_marks = _max_marks(question, default_max_marks)
    words = sum(len(t.split()) for t in _usable_texts(extracted_texts))
    word_limit = getattr(question, "word_limit", None)

    if words == 0:
        coverage = 0.0
        score = 0.0
        feedback = (
            "No readable answer text could be extracted. Please resubmit clearer "
            "images or type your answer."
        )
    else:
        coverage = min(words / word_limit, 1.0) if word_limit else 1.0
        score = round(max_marks * (0.4 + 0.4 * coverage), 1)
        if coverage >= 0.75:
            feedback = (
                "The answer covers the expected length. Review structure, examples "
                "and conclusion against the question's core demand."
            )
        elif coverage >= 0.4:
            feedback = (
                "The answer is shorter than expected. Develop the main points with "
                "examples and supporting data."
            )
        else:
            feedback = (
                "The answer is too brief to address the question fully. Expand the "
                "introduction, body and conclusion."
            )

    return EvaluationResult(
        score=score,
        max_score=max_marks,
        feedback=feedback,
        breakdown={
            "relevancy": None,
            "word_count": words,
            "word_limit": word_limit,
            "coverage": round(coverage, 2),
        },
        source="mock",
        parsed_ok=False,
    )


class EvaluationEngine:
    def __init__(
        self,
        primary: Optional[CompletionProvider] = None,
        secondary: Optional[CompletionProvider] = None,
        *,
        default_max_marks: int = 10,
    ):
        self.providers = [p for p in (primary, secondary) if p is not None]
        self.default_max_marks = default_max_marks

    @classmethod
    def from_settings(cls, settings: Settings) -> "EvaluationEngine":
        return cls(
            GeminiProvider.from_settings(settings),
            OpenAIProvider.from_settings(settings),
            default_max_marks=settings.DEFAULT_MAX_MARKS,
        )

    def build_prompt(self, question: Any, extracted_texts: Sequence[str]) -> str:
        return build_prompt(question, extracted_texts, default_max_marks=self.default_max_marks)

    def evaluate(self, question: Any, extracted_texts: Sequence[str]) -> EvaluationResult:
        """Never raises for provider problems; the mock scorer is the last resort."""
        if not _usable_texts(extracted_texts):
            logger.info("No usable extracted text, using mock evaluation")
            return mock_evaluate(
                question, extracted_texts, default_max_marks=self.default_max_marks
            )

        max_marks = _max_marks(question, self.default_max_marks)
        prompt = self.build_prompt(question, extracted_texts)

        for provider in self.providers:
            name = getattr(provider, "name", type(provider).__name__)
            try:
                response_text = provider.complete(prompt)
            except Exception as e:
                logger.warning(f"Evaluation provider {name} unavailable: {e}")
                continue

            parsed = parse_evaluation_response(response_text, max_marks)
            if not parsed.parsed_ok:
                logger.warning(f"Could not parse a score from {name}, using max/2")
            logger.info(f"AI evaluation completed using {name}: score={parsed.score}/{max_marks:g}")
            return EvaluationResult(
                score=parsed.score,
                max_score=max_marks,
                feedback=parsed.feedback,
                breakdown=parsed.breakdown,
                source=name,
                parsed_ok=parsed.parsed_ok,
            )

        logger.warning("All evaluation providers failed, using mock evaluation")
        return mock_evaluate(question, extracted_texts, default_max_marks=self.default_max_marks)
