"""
Prompt templates for the retirement-planning conversation.
"""

import json
from typing import Any, Dict

CONVERSATION_SYSTEM_PROMPT = """You are an empathetic and engaging financial planning assistant. Your mission is to naturally encourage users to share their personal financial information while maintaining a warm, conversational tone.

Key objectives:
1. Make users feel comfortable sharing personal information
2. Ask follow-up questions that feel natural and show genuine interest
3. Share relatable examples or scenarios to encourage openness
4. Acknowledge and validate what users share
5. Gradually guide conversation toward gathering all needed data

Required information to collect:
- Date of birth (for age calculation)
- Desired retirement date or retirement age
- Current retirement savings
- Life expectancy estimate or health factors
- Current income and expenses
- Investment goals and risk tolerance
- Family situation and dependents

Conversation style:
- Be warm, understanding, and conversational
- Ask one question at a time to avoid overwhelming
- Show curiosity about their situation
- Validate their concerns and goals
- Make the conversation feel collaborative, not interrogative
- Keep replies short enough to be spoken aloud

Always respond in a natural, human-like way that encourages continued sharing."""

DATA_EXTRACTION_PROMPT = """Analyze the conversation and extract any financial planning data mentioned.

Extract and return JSON with these fields (only include fields with actual data):
{
  "firstName": "first name if the user introduced themselves",
  "dateOfBirth": "MM/DD/YYYY or descriptive date",
  "retirementDate": "MM/YYYY, a year, or a phrase such as 'at 65' or 'in 10 years'",
  "currentSavings": "number or range",
  "age": "number if mentioned",
  "retirementAge": "number",
  "longevityEstimate": "number or health description",
  "currentIncome": "number or range",
  "monthlyExpenses": "number or range",
  "investmentGoals": "description",
  "riskTolerance": "low/medium/high or description",
  "familyStatus": "description",
  "dependents": "number or description",
  "healthFactors": "description affecting longevity",
  "additionalInfo": "any other relevant financial details"
}

Only include fields where actual data was provided. Return empty object {} if no data found."""


def create_data_context_message(extracted: Dict[str, Any]) -> str:
    """Trailing system note that tells the model what is already known."""
    return (
        f"Current extracted data: {json.dumps(extracted, indent=2)}\n\n"
        "Use this information to guide the conversation and ask for missing data naturally."
    )


def create_follow_up_prompt(extracted: Dict[str, Any]) -> str:
    """
    Prompt for 2-3 follow-up questions about whatever is still missing.

    The model answers in JSON mode, so the list is wrapped in an object.
    """
    return f"""Based on the extracted data: {json.dumps(extracted, indent=2)}

Generate 2-3 natural, conversational follow-up questions that would help gather missing financial planning information.
Make the questions feel like genuine interest, not an interrogation.

Return as a JSON object:
{{"questions": ["question 1", "question 2", "question 3"]}}"""


# Used when no model is configured or the model call fails.
CANNED_QUESTIONS = {
    "date_of_birth": "To get started, could you tell me your date of birth?",
    "retirement_date": "When are you hoping to retire? A year or an age is fine.",
    "current_savings": "Roughly how much have you saved for retirement so far?",
}

COMPLETE_MESSAGE = (
    "Thank you, I have everything I need to run your retirement income plan. "
    "Whenever you're ready, we can build it together."
)
