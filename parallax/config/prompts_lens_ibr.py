"""
Lens: Interest-Based Relational
Purpose: Separate positions from interests and look for shared ground.
"""

LENS_ID = "ibr"
NAME = "Interest-Based Relational"
SHORT_NAME = "IBR"
CATEGORY = "resolution"
TIER = "core"
DESCRIPTION = "Separating interests from positions and finding hidden common ground"

PROMPT_SECTION = """**LENS: Interest-Based Relational (IBR) | CORE (always analyze when active)**
From Fisher and Ury's "Getting to Yes": separate the people from the problem.

- **Positions**: what the speaker demands or proposes as the answer. Concrete, rigid, often zero-sum.
- **Interests**: the motivations, worries and needs underneath a position. Flexible and often shared.
- **Interest behind position**: name the real interest hiding behind the stated position.
- **Common ground**: any shared interest, value or goal, however small.

Example: position "I want the corner office"; interest "I want to feel valued and have somewhere quiet to focus"."""

RESPONSE_SCHEMA = """"ibr": {
  "interests": ["string"],
  "positions": ["string"],
  "interestBehindPosition": "string",
  "commonGround": "string or null",
  "confidence": 0.0
}"""
