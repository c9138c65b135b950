"""
Lens: Karpman Drama Triangle
Purpose: Track persecutor / victim / rescuer roles and the shifts between them.
"""

LENS_ID = "dramaTriangle"
NAME = "Karpman Drama Triangle"
SHORT_NAME = "Drama"
CATEGORY = "relational"
TIER = "core"
DESCRIPTION = "Persecutor, victim and rescuer role dynamics and how they shift during conflict"

PROMPT_SECTION = """**LENS: Karpman Drama Triangle | CORE (always analyze when active)**
Stephen Karpman described three roles people rotate through in dysfunctional conflict:

- **Persecutor**: blaming, criticizing, controlling. "It's your fault." Fuelled by anger.
- **Victim**: helpless, hopeless, "poor me". "There's nothing I can do." Fuelled by shame.
- **Rescuer**: over-helping, fixing, enabling. "Let me handle it." Fuelled by guilt.

Watch for:
- **Role shifts**: people change roles mid-conversation (persecutor becomes victim once challenged).
- **Rescuer trap**: rescuing to escape one's own discomfort rather than to help.
- **Invitations**: each role pulls the other person into its complement.

If no Drama Triangle dynamic is present, return null for the role."""

RESPONSE_SCHEMA = """"dramaTriangle": {
  "role": "persecutor|victim|rescuer|null",
  "roleShifts": ["string describing detected shifts"],
  "rescuerTrap": false,
  "confidence": 0.0
}"""
