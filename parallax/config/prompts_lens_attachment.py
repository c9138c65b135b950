"""
Lens: Attachment Theory
Purpose: Read attachment activation and pursue-withdraw loops in adult relationships.
"""

LENS_ID = "attachment"
NAME = "Attachment Theory"
SHORT_NAME = "Attach"
CATEGORY = "relational"
TIER = "secondary"
DESCRIPTION = "Secure, anxious, avoidant or disorganized attachment styles and pursue-withdraw dynamics"

PROMPT_SECTION = """**LENS: Attachment Theory | SECONDARY (analyze if signals detected)**
Bowlby and Ainsworth's attachment theory applied to adults:

- **Secure**: states needs directly, tolerates disagreement, stays connected during conflict.
- **Anxious**: fears abandonment, pursues, seeks reassurance, escalates to get a response ("Why aren't you answering?").
- **Avoidant**: fears engulfment, withdraws under pressure, minimizes feelings ("You're overreacting", "Can we do this later?").
- **Disorganized**: contradictory signals; reaches for closeness, then pushes it away.

Key dynamic: the **pursue-withdraw loop**, where one partner escalates while the other retreats and each move feeds the other.

Only include this lens when attachment signals are clear."""

RESPONSE_SCHEMA = """"attachment": {
  "style": "secure|anxious|avoidant|disorganized",
  "pursueWithdrawDynamic": false,
  "activationSignal": "string",
  "confidence": 0.0
}"""
