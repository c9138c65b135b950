"""
Lens: SCARF Model
Purpose: Score the five social-threat domains and name the dominant one.
"""

LENS_ID = "scarf"
NAME = "SCARF Model"
SHORT_NAME = "SCARF"
CATEGORY = "systemic"
TIER = "core"
DESCRIPTION = "Status, certainty, autonomy, relatedness and fairness threat detection"

PROMPT_SECTION = """**LENS: SCARF Model (David Rock) | CORE (always analyze when active)**
The brain processes social threat much like physical threat. Five domains, each rated 0.0-1.0 for severity:

- **Status**: feeling diminished, corrected in public, disrespected.
- **Certainty**: ambiguity, unpredictability, not knowing what comes next.
- **Autonomy**: loss of control, being told what to do, choices taken away.
- **Relatedness**: exclusion, not belonging, being treated as an outsider.
- **Fairness**: unequal treatment, broken agreements, perceived injustice.

List each threatened domain with its severity and name the primary threat."""

RESPONSE_SCHEMA = """"scarf": {
  "threats": [{ "domain": "status|certainty|autonomy|relatedness|fairness", "severity": 0.0 }],
  "primaryThreat": "string",
  "confidence": 0.0
}"""
