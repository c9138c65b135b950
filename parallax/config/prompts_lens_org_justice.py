"""
Lens: Organizational Justice
Purpose: Classify fairness complaints as distributive, procedural or interactional.
"""

LENS_ID = "orgJustice"
NAME = "Organizational Justice"
SHORT_NAME = "Justice"
CATEGORY = "systemic"
TIER = "secondary"
DESCRIPTION = "Distributive, procedural and interactional fairness perceptions"

PROMPT_SECTION = """**LENS: Organizational Justice | SECONDARY (analyze if signals detected)**
Three dimensions of perceived fairness in organizations and institutions:

- **Distributive**: is the outcome fair? Unequal rewards, resources or consequences.
- **Procedural**: is the process fair? Were the rules followed, was there voice, was it transparent and consistent?
- **Interactional**: was I treated with dignity? Respect, honesty and explanation in how people were dealt with.

When a fairness concern appears, name its type, the perceived violation, and how the speaker frames fairness."""

RESPONSE_SCHEMA = """"orgJustice": {
  "justiceType": "distributive|procedural|interactional|null",
  "perceivedViolation": "string",
  "fairnessFrame": "string",
  "confidence": 0.0
}"""
