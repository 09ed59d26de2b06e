"""
Retirement Advisor - drives the intake conversation.

Each user turn produces a spoken reply, an updated set of extracted facts
and a few follow-up questions. The language model is optional: without it
the advisor asks for the next missing field and relies on the regex
extractor.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..extraction import IntakeData, extract_from_text
from ..llm.base import Message
from ..llm.manager import LLMManager
from .prompts import (
    CANNED_QUESTIONS,
    COMPLETE_MESSAGE,
    CONVERSATION_SYSTEM_PROMPT,
    DATA_EXTRACTION_PROMPT,
    create_data_context_message,
    create_follow_up_prompt,
)


class ConversationError(Exception):
    """The assistant could not produce a reply."""


@dataclass
class ConversationMessage:
    """One line of the visible conversation."""
    type: str  # "user" or "assistant"
    content: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationMessage":
        speaker = data.get("type") or data.get("role") or "user"
        return cls(
            type="user" if speaker == "user" else "assistant",
            content=str(data.get("content") or ""),
            timestamp=data.get("timestamp") or datetime.now().isoformat(),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "content": self.content, "timestamp": self.timestamp}


def parse_history(raw: Any) -> List[ConversationMessage]:
    """Accept a list of dicts (or a JSON string of one) from the browser."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except json.JSONDecodeError:
            return []
    if not isinstance(raw, list):
        return []
    history = []
    for item in raw:
        if isinstance(item, ConversationMessage):
            history.append(item)
        elif isinstance(item, dict):
            history.append(ConversationMessage.from_dict(item))
    return history


@dataclass
class ConversationTurn:
    """Everything the API returns for one user message."""
    ai_response: str
    extracted: IntakeData
    follow_up_questions: List[str]
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def is_complete(self) -> bool:
        return self.extracted.is_complete

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "aiResponse": self.ai_response,
            "extractedData": self.extracted.to_dict(),
            "followUpQuestions": self.follow_up_questions,
            "isComplete": self.is_complete,
            "missingFields": self.extracted.missing_fields(),
            "timestamp": self.timestamp,
        }


def _loads_object(content: str) -> Dict[str, Any]:
    """Parse a JSON-mode reply, tolerating a fenced code block."""
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


class RetirementAdvisor:
    """
    Conversational intake for the retirement paycheck plan.

    Args:
        llm: Configured LLMManager, or None for the offline fallback
    """

    def __init__(self, llm: Optional[LLMManager] = None):
        self.llm = llm

    @property
    def use_llm(self) -> bool:
        return self.llm is not None and self.llm.is_available

    def _next_question(self, extracted: IntakeData) -> str:
        missing = extracted.missing_fields()
        if not missing:
            return COMPLETE_MESSAGE
        return CANNED_QUESTIONS[missing[0]]

    def generate_response(
        self,
        user_message: str,
        history: Optional[List[ConversationMessage]] = None,
        extracted: Optional[IntakeData] = None,
    ) -> str:
        """Reply to the user, steering towards whatever is still missing."""
        extracted = extracted or IntakeData()

        if not self.use_llm:
            known = extracted.merge(extract_from_text(user_message))
            return self._next_question(known)

        messages = [Message(role="system", content=CONVERSATION_SYSTEM_PROMPT)]
        for msg in history or []:
            role = "user" if msg.type == "user" else "assistant"
            messages.append(Message(role=role, content=msg.content))
        messages.append(Message(role="user", content=user_message))

        known = extracted.to_dict()
        if known:
            messages.append(Message(role="system", content=create_data_context_message(known)))

        try:
            response = self.llm.chat(messages, temperature=0.7, max_tokens=300)
        except Exception as e:
            print(f"  [LLM] ❌ Error generating conversation response: {e}")
            raise ConversationError("Failed to generate AI response") from e

        return response.content.strip()

    def extract_data(
        self,
        user_message: str,
        history: Optional[List[ConversationMessage]] = None,
    ) -> IntakeData:
        """
        Extract facts from the whole conversation.

        The regex pass always runs; the model's answer is merged over it.
        Never raises.
        """
        transcript_lines = [f"{msg.type}: {msg.content}" for msg in history or []]
        transcript_lines.append(f"user: {user_message}")

        heuristic = IntakeData()
        for msg in history or []:
            if msg.type == "user":
                heuristic = heuristic.merge(extract_from_text(msg.content))
        heuristic = heuristic.merge(extract_from_text(user_message))

        if not self.use_llm:
            return heuristic

        try:
            response = self.llm.chat(
                [
                    Message(role="system", content=DATA_EXTRACTION_PROMPT),
                    Message(role="user", content="\n".join(transcript_lines)),
                ],
                temperature=0.1,
                max_tokens=500,
                json_mode=True,
            )
            model_data = _loads_object(response.content)
        except Exception as e:
            print(f"  [LLM] ⚠️ Data extraction failed, using heuristics only: {e}")
            return heuristic

        return heuristic.merge(IntakeData.from_dict(model_data))

    def follow_up_questions(
        self,
        extracted: Optional[IntakeData] = None,
        history: Optional[List[ConversationMessage]] = None,
    ) -> List[str]:
        """2-3 questions that would fill the gaps. Never raises."""
        extracted = extracted or IntakeData()
        canned = [CANNED_QUESTIONS[name] for name in extracted.missing_fields()]

        if not self.use_llm:
            return canned

        try:
            response = self.llm.chat(
                [
                    Message(role="system", content=create_follow_up_prompt(extracted.to_dict())),
                    Message(role="user", content="Generate follow-up questions"),
                ],
                temperature=0.8,
                max_tokens=200,
                json_mode=True,
            )
            questions = _loads_object(response.content).get("questions") or []
        except Exception as e:
            print(f"  [LLM] ⚠️ Follow-up generation failed: {e}")
            return canned

        questions = [str(q).strip() for q in questions if str(q).strip()]
        return questions[:3] or canned

    def process_turn(
        self,
        user_message: str,
        history: Optional[List[ConversationMessage]] = None,
        extracted: Optional[IntakeData] = None,
    ) -> ConversationTurn:
        """Respond, extract, merge into what is known, then ask follow-ups."""
        extracted = extracted or IntakeData()
        ai_response = self.generate_response(user_message, history, extracted)
        merged = extracted.merge(self.extract_data(user_message, history))
        questions = self.follow_up_questions(merged, history)
        return ConversationTurn(
            ai_response=ai_response,
            extracted=merged,
            follow_up_questions=questions,
        )

