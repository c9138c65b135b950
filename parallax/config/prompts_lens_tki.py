"""
Lens: Thomas-Kilmann Conflict Modes
Purpose: Place the speaker on the assertiveness / cooperativeness grid and detect mode shifts.
"""

LENS_ID = "tki"
NAME = "Thomas-Kilmann Conflict Modes"
SHORT_NAME = "TKI"
CATEGORY = "resolution"
TIER = "core"
DESCRIPTION = "Conflict-handling style: competing, collaborating, compromising, avoiding or accommodating"

PROMPT_SECTION = """**LENS: Thomas-Kilmann Conflict Mode Instrument (TKI) | CORE (always analyze when active)**
Rate the speaker on two axes:
- **Assertiveness** (0.0-1.0): how hard they pursue their own concerns.
- **Cooperativeness** (0.0-1.0): how much they attend to the other person's concerns.

The five modes:
- **Competing** (high assertiveness, low cooperativeness): "My way." Win-lose.
- **Collaborating** (high, high): "Let's find a way that works for both of us."
- **Compromising** (middle, middle): "Let's each give something up."
- **Avoiding** (low, low): sidestepping, postponing, withdrawing.
- **Accommodating** (low assertiveness, high cooperativeness): "Whatever you want."

If the speaker's mode has changed compared with their earlier messages, describe the shift."""

RESPONSE_SCHEMA = """"tki": {
  "mode": "competing|collaborating|compromising|avoiding|accommodating",
  "assertiveness": 0.0,
  "cooperativeness": 0.0,
  "modeShift": "string or null",
  "confidence": 0.0
}"""
