"""
Lens: CBT Cognitive Distortions
Purpose: Name the thinking traps in a message and hint at the core belief behind them.
"""

LENS_ID = "cbt"
NAME = "Cognitive Distortions"
SHORT_NAME = "CBT"
CATEGORY = "cognitive"
TIER = "core"
DESCRIPTION = "Thinking traps such as catastrophizing, mind-reading, all-or-nothing and emotional reasoning"

PROMPT_SECTION = """**LENS: CBT Cognitive Distortions | CORE (always analyze)**
Identify Cognitive Behavioral Therapy thinking traps. The ones that show up most in conflict:

- **All-or-nothing thinking**: "You ALWAYS..." / "You NEVER...", no middle ground.
- **Mind-reading**: claiming to know what the other person thinks or intends.
- **Catastrophizing**: leaping to the worst case ("This means we're finished").
- **Emotional reasoning**: "I feel it, so it must be true."
- **Should statements**: rigid rules about how other people must behave.
- **Personalization**: hearing everything as a personal attack.
- **Overgeneralization**: one event turned into a universal pattern.
- **Labeling**: reducing a person to a label ("You're selfish").
- **Discounting positives**: "Yeah, but..."
- **Fortune-telling**: predicting bad outcomes as certainties.

Also offer a hint about the core belief that may be driving the distortions (e.g. "I'm not enough", "People can't be trusted")."""

RESPONSE_SCHEMA = """"cbt": {
  "distortions": [{ "type": "string (distortion name)", "evidence": "string (quote or pattern from message)" }],
  "coreBeliefHint": "string",
  "confidence": 0.0
}"""
