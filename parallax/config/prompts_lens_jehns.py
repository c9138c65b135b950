"""
Lens: Jehn's Conflict Types
Purpose: Separate task, relationship and process conflict and flag task-to-relationship spillover.
"""

LENS_ID = "jehns"
NAME = "Jehn's Conflict Types"
SHORT_NAME = "Jehn's"
CATEGORY = "systemic"
TIER = "secondary"
DESCRIPTION = "Task versus relationship versus process conflict, and spillover risk between types"

PROMPT_SECTION = """**LENS: Jehn's Conflict Types | SECONDARY (analyze if signals detected)**
Karen Jehn distinguishes three kinds of conflict:

- **Task**: disagreement about the work itself (what to do, priorities, the right answer). Often productive when handled well.
- **Relationship**: personal friction, clashing personalities ("I can't stand working with you"). Reliably corrosive.
- **Process**: disagreement about how the work gets done (logistics, delegation, procedure).

Critical dynamic: **task-to-relationship spillover**, where a healthy disagreement about the work turns personal.

Classify the conflict type, rate escalation risk and flag spillover."""

RESPONSE_SCHEMA = """"jehns": {
  "conflictType": "task|relationship|process",
  "escalationRisk": "low|moderate|high",
  "taskToRelationshipSpillover": false,
  "confidence": 0.0
}"""
