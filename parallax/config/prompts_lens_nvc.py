"""
Lens: Nonviolent Communication
Purpose: Foundational observation / feeling / need / request reading of every message.
The NVC result lives at the root of the analysis object, so its schema is never nested under "lenses".
"""

LENS_ID = "nvc"
NAME = "Nonviolent Communication"
SHORT_NAME = "NVC"
CATEGORY = "communication"
TIER = "core"
DESCRIPTION = "Marshall Rosenberg's observation, feeling, need, request framework"

PROMPT_SECTION = """**LENS: Nonviolent Communication (NVC) | ALWAYS ANALYZE**
Read the message through two NVC sub-lenses.

Sub-lens A: Classic NVC (Marshall Rosenberg)
- Observation: What concretely happened? Remove judgment, evaluation and interpretation. Facts only.
- Feeling: What is the speaker feeling? Use a precise emotion word ("I feel that..." introduces a thought, not a feeling).
- Need: Which universal human need is alive for them? (connection, respect, autonomy, safety, being seen, mattering, fairness, trust, rest, meaning)
- Request: What could they ask for that would meet the need? Phrase it as a positive, doable action ("would you be willing to..."), never as "stop doing X".

Sub-lens B: Beneath the Surface
- Subtext: What are they really saying? One or two direct, compassionate sentences.
- Blind Spots: What can the speaker not see about how they are communicating? 1-3 specific items.
- Unmet Needs: 1-4 short labels for needs that are going unmet.
- NVC Translation: Rewrite the message in NVC form: observation, feeling, need, request. It must sound like a real person talking, warm and vulnerable, never clinical.
- Emotional Temperature: 0.0 (calm) to 1.0 (volatile). Weigh accusations, absolutes ("always", "never"), name-calling, sarcasm, withdrawal and passive aggression.

The "lenses.nvc" object, when returned, repeats the root NVC fields."""

RESPONSE_SCHEMA = """"nvc": {
  "observation": "string",
  "feeling": "string",
  "need": "string",
  "request": "string",
  "subtext": "string",
  "blindSpots": ["string"],
  "unmetNeeds": ["string"],
  "nvcTranslation": "string",
  "emotionalTemperature": 0.0
}"""
