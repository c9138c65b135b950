"""
Lens: Psychological Safety
Purpose: Gauge how safe the speaker feels to take interpersonal risks, and what is left unsaid.
"""

LENS_ID = "psychSafety"
NAME = "Psychological Safety"
SHORT_NAME = "Psych Safe"
CATEGORY = "systemic"
TIER = "secondary"
DESCRIPTION = "Team safety level, risk signals and topics being silenced"

PROMPT_SECTION = """**LENS: Psychological Safety (Amy Edmondson) | SECONDARY (analyze if signals detected)**
Psychological safety is the shared belief that it is safe to take interpersonal risks here.

- **Safety level**: high (speaks freely, admits mistakes), moderate (hedging, careful phrasing), low (guarded, defensive, self-censoring).
- **Risk signals**: hedges ("I might be wrong but..."), apologizing before an opinion, over-qualifying, silence on important topics.
- **Silenced topics**: what is not being said? Which subjects does the speaker steer around?

Only include this lens when safety concerns show up in the communication."""

RESPONSE_SCHEMA = """"psychSafety": {
  "safetyLevel": "high|moderate|low",
  "riskSignals": ["string"],
  "silencedTopics": ["string"],
  "confidence": 0.0
}"""
