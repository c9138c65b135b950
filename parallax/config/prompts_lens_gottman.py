"""
Lens: Gottman Four Horsemen
Purpose: Detect the four communication patterns that predict relationship breakdown, plus repair bids.
"""

LENS_ID = "gottman"
NAME = "Gottman Four Horsemen"
SHORT_NAME = "Gottman"
CATEGORY = "relational"
TIER = "core"
DESCRIPTION = "Criticism, contempt, defensiveness and stonewalling, the four predictors of relationship failure"

PROMPT_SECTION = """**LENS: Gottman Four Horsemen | CORE (always analyze)**
John Gottman's research names four patterns that reliably predict relationship failure:

1. **Criticism**: attacking who someone is instead of what they did ("You always...", "You never...", "You're the kind of person who...").
2. **Contempt**: superiority, mockery, sarcasm, eye-rolling; disgust made audible. The strongest single predictor of breakup.
3. **Defensiveness**: counter-attack, righteous victimhood, refusing responsibility ("That's not true, YOU are the one who...").
4. **Stonewalling**: shutting down, going silent, leaving the conversation physically or emotionally.

Also identify:
- Repair attempts: any bid to reconnect, soften, joke or de-escalate, however clumsy.
- Positive-to-negative ratio: stable couples keep roughly 5:1. Describe the signal this message gives.
- Startup type: "harsh" (opens with blame), "soft" (opens with a feeling or need) or "neutral"."""

RESPONSE_SCHEMA = """"gottman": {
  "horsemen": [{ "type": "criticism|contempt|defensiveness|stonewalling", "evidence": "string" }],
  "repairAttempts": ["string"],
  "positiveToNegativeRatio": "string (e.g., 'below 5:1 threshold')",
  "startupType": "harsh|soft|neutral",
  "confidence": 0.0
}"""
