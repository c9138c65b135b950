"""
Lens: Narrative Therapy
Purpose: Surface totalizing stories and identity claims, and offer a re-authored telling.
"""

LENS_ID = "narrative"
NAME = "Narrative Therapy"
SHORT_NAME = "Narrative"
CATEGORY = "cognitive"
TIER = "secondary"
DESCRIPTION = "Totalizing narratives, identity claims and openings to re-author the conflict story"

PROMPT_SECTION = """**LENS: Narrative Therapy | SECONDARY (analyze if signals detected)**
From Michael White and David Epston:

- **Totalizing narratives**: statements that shrink a person to a single story ("You're always the victim", "We always fight about money"). They freeze identities and block change.
- **Identity claims**: the role the speaker casts themselves in, and the role they cast the other person in.
- **Re-authoring suggestion**: one alternative telling of the story that opens possibility instead of closing it.

Only include this lens when you see totalizing language, rigid identity framing or "always/never" story patterns."""

RESPONSE_SCHEMA = """"narrative": {
  "totalizingNarratives": ["string"],
  "identityClaims": ["string"],
  "reauthoringSuggestion": "string",
  "confidence": 0.0
}"""
