"""
Lens: Restorative Justice
Purpose: Name the harm, the needs on both sides of it, and one concrete repair step.
"""

LENS_ID = "restorative"
NAME = "Restorative Justice"
SHORT_NAME = "Restore"
CATEGORY = "resolution"
TIER = "secondary"
DESCRIPTION = "Identifying harm, naming the needs of both parties and pathways toward repair"

PROMPT_SECTION = """**LENS: Restorative Justice | SECONDARY (analyze if signals detected)**
Restorative principles applied to an interpersonal conflict:

- **Harm identified**: the specific harm done. Harm, not blame: who was hurt, and how?
- **Needs of the harmed**: what would help the hurt person feel whole (acknowledgment, apology, changed behavior, understanding)?
- **Needs of the harmer**: what the person who caused harm needs (context, understanding of impact, a way to make amends).
- **Repair pathway**: one concrete step toward repair that keeps both people's dignity intact.

This lens is about accountability and healing, never punishment. Only include it when a clear harm dynamic is present."""

RESPONSE_SCHEMA = """"restorative": {
  "harmIdentified": "string",
  "needsOfHarmed": ["string"],
  "needsOfHarmer": ["string"],
  "repairPathway": "string",
  "confidence": 0.0
}"""
