"""
Tests for the retirement intake conversation.

The language model is replaced by a MagicMock standing in for LLMManager.
"""

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from paycheck_agent.conversation import (
    ConversationError,
    ConversationMessage,
    RetirementAdvisor,
    parse_history,
)
from paycheck_agent.conversation.prompts import CANNED_QUESTIONS, COMPLETE_MESSAGE
from paycheck_agent.extraction import IntakeData
from paycheck_agent.llm import LLMResponse


def _reply(content):
    return LLMResponse(content=content, model="fake", provider="openai")


def _fake_llm(*contents):
    llm = MagicMock()
    llm.is_available = True
    llm.chat.side_effect = [_reply(c) for c in contents]
    return llm


# ═══════════════════════════════════════════════════════════════
# HISTORY PARSING
# ═══════════════════════════════════════════════════════════════

class TestHistory:
    def test_json_string(self):
        raw = json.dumps([
            {"type": "user", "content": "Hi"},
            {"role": "ai", "content": "Hello"},
        ])
        history = parse_history(raw)
        assert [m.type for m in history] == ["user", "assistant"]
        assert history[1].content == "Hello"

    def test_garbage_is_empty(self):
        assert parse_history("not json") == []
        assert parse_history({"type": "user"}) == []
        assert parse_history("") == []

    def test_message_round_trip_keys(self):
        msg = ConversationMessage(type="user", content="Hi", timestamp="t")
        assert msg.to_dict() == {"type": "user", "content": "Hi", "timestamp": "t"}


# ═══════════════════════════════════════════════════════════════
# OFFLINE (NO MODEL)
# ═══════════════════════════════════════════════════════════════

class TestOfflineAdvisor:
    def test_asks_for_first_missing_field(self):
        advisor = RetirementAdvisor()
        assert not advisor.use_llm
        assert advisor.generate_response("Hello") == CANNED_QUESTIONS["date_of_birth"]

    def test_skips_what_the_message_answers(self):
        advisor = RetirementAdvisor()
        reply = advisor.generate_response("I was born in 1964")
        assert reply == CANNED_QUESTIONS["retirement_date"]

    def test_complete_message(self):
        advisor = RetirementAdvisor()
        known = IntakeData(date_of_birth="1964", retirement_date="65")
        reply = advisor.generate_response("I have $250,000 saved", extracted=known)
        assert reply == COMPLETE_MESSAGE

    def test_process_turn_merges_history(self):
        advisor = RetirementAdvisor()
        history = [
            ConversationMessage(type="user", content="I was born in 1964"),
            ConversationMessage(type="assistant", content="When do you want to retire?"),
        ]
        turn = advisor.process_turn("I want to retire at 65", history=history)

        data = turn.to_dict()
        assert data["success"] is True
        assert data["extractedData"]["dateOfBirth"] == "1964"
        assert data["extractedData"]["retirementDate"] == "65"
        assert data["missingFields"] == ["current_savings"]
        assert data["followUpQuestions"] == [CANNED_QUESTIONS["current_savings"]]
        assert data["isComplete"] is False

    def test_unavailable_manager_counts_as_offline(self):
        llm = MagicMock()
        llm.is_available = False
        advisor = RetirementAdvisor(llm)
        assert advisor.generate_response("Hello") == CANNED_QUESTIONS["date_of_birth"]
        llm.chat.assert_not_called()


# ═══════════════════════════════════════════════════════════════
# WITH A MODEL
# ═══════════════════════════════════════════════════════════════

class TestModelAdvisor:
    def test_generate_response_sends_history_and_context(self):
        llm = _fake_llm("  Great, and when would you like to retire?  ")
        advisor = RetirementAdvisor(llm)
        history = [ConversationMessage(type="assistant", content="What is your birthday?")]

        reply = advisor.generate_response(
            "March 6, 1964", history=history, extracted=IntakeData(first_name="Ann")
        )

        assert reply == "Great, and when would you like to retire?"
        messages = llm.chat.call_args.args[0]
        assert [m.role for m in messages] == ["system", "assistant", "user", "system"]
        assert "Current extracted data" in messages[-1].content
        assert llm.chat.call_args.kwargs == {"temperature": 0.7, "max_tokens": 300}

    def test_generate_response_failure(self):
        llm = MagicMock()
        llm.is_available = True
        llm.chat.side_effect = RuntimeError("all providers down")
        advisor = RetirementAdvisor(llm)
        with pytest.raises(ConversationError, match="Failed to generate AI response"):
            advisor.generate_response("Hello")

    def test_extract_data_merges_model_over_regex(self):
        llm = _fake_llm(json.dumps({
            "currentRetirementSavings": 300000,
            "riskTolerance": "moderate",
            "retirementDate": None,
        }))
        advisor = RetirementAdvisor(llm)

        data = advisor.extract_data("I want to retire at 65 and I have $250,000 saved")

        assert data.retirement_date == "65"
        assert data.current_savings == 300000
        assert data.risk_tolerance == "moderate"
        assert llm.chat.call_args.kwargs["json_mode"] is True

    def test_extract_data_tolerates_fenced_json(self):
        llm = _fake_llm('```json\n{"firstName": "Ann"}\n```')
        advisor = RetirementAdvisor(llm)
        assert advisor.extract_data("Hi").first_name == "Ann"

    def test_extract_data_bad_json_falls_back(self):
        llm = _fake_llm("sorry, I can't do that")
        advisor = RetirementAdvisor(llm)
        data = advisor.extract_data("I want to retire at 65")
        assert data.retirement_date == "65"

    def test_follow_up_questions_capped(self):
        llm = _fake_llm(json.dumps({"questions": ["a?", "b?", " ", "c?", "d?"]}))
        advisor = RetirementAdvisor(llm)
        assert advisor.follow_up_questions(IntakeData()) == ["a?", "b?", "c?"]

    def test_follow_up_questions_fallback(self):
        llm = _fake_llm(json.dumps({"questions": []}))
        advisor = RetirementAdvisor(llm)
        questions = advisor.follow_up_questions(IntakeData(date_of_birth="1964"))
        assert questions == [
            CANNED_QUESTIONS["retirement_date"],
            CANNED_QUESTIONS["current_savings"],
        ]
