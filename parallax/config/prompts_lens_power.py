"""
Lens: Power Dynamics
Purpose: Read the power structure of the exchange, the moves that assert it and the voices it silences.
"""

LENS_ID = "power"
NAME = "Power Dynamics"
SHORT_NAME = "Power"
CATEGORY = "systemic"
TIER = "secondary"
DESCRIPTION = "Symmetric versus asymmetric power, power moves and silencing patterns"

PROMPT_SECTION = """**LENS: Power Dynamics | SECONDARY (analyze if signals detected)**
Power shapes every conflict. Examine:

- **Power dynamic**: symmetric (roughly equal) or asymmetric (one side holds structural, economic, social or emotional power over the other).
- **Power moves**: behavior that asserts, defends or challenges power: interrupting, dismissing, ultimatums, gatekeeping ("I decide when..."), demands for emotional labor, weaponized vulnerability.
- **Silencing patterns**: ways a voice is being shrunk: tone policing ("calm down"), denial of events ("that never happened"), credibility attacks ("you're being dramatic"), controlling the topic.

Stay alert to invisible power: who sets the agenda, who defines "reasonable", whose feelings count."""

RESPONSE_SCHEMA = """"power": {
  "powerDynamic": "symmetric|asymmetric",
  "powerMoves": ["string"],
  "silencingPatterns": ["string"],
  "confidence": 0.0
}"""
