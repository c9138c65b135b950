from __future__ import annotations

import os
from pathlib import Path

# Local state (JSON session records, logs)
DATA_DIR: Path = Path(os.getenv("PARALLAX_DATA_DIR") or Path(__file__).resolve().parents[2] / "data")
SESSIONS_DIR: Path = DATA_DIR / "sessions"

# Logging
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "parallax.log"
AUDIT_LOG_FILE: Path = LOG_DIR / "phase_transitions_audit.log"
LOG_LEVEL: str = os.getenv("PARALLAX_LOG_LEVEL", "INFO").upper()

# Anthropic
ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")

# OpenAI
OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")

# Gemini (Google)
# IMPORTANT: Do not hardcode API keys in this repo. Set env var instead.
GEMINI_API_KEY: str | None = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_BASE_URL: str | None = os.getenv("GEMINI_BASE_URL")

# LotL (browser-routed controller)
LOTL_BASE_URL: str = os.getenv("LOTL_BASE_URL", "http://localhost:3000")
LOTL_TIMEOUT: float = float(os.getenv("LOTL_TIMEOUT", "180"))

# Smart Default logic
# Priority:
# 1) Explicit env var always wins
# 2) Otherwise choose a provider that has credentials configured
# 3) Otherwise default to LotL so the system can run without API keys
_env_provider = (os.getenv("LLM_PROVIDER") or "").strip().lower()

if _env_provider:
    _default_provider = _env_provider
elif ANTHROPIC_API_KEY:
    _default_provider = "anthropic"
elif OPENAI_API_KEY:
    _default_provider = "openai"
elif GEMINI_API_KEY:
    _default_provider = "gemini"
else:
    _default_provider = "lotl"

LLM_PROVIDER: str = _default_provider

# Provider failover order (csv).  First working provider wins.
_env_failover = (os.getenv("LLM_FAILOVER_CHAIN") or "").strip()
LLM_FAILOVER_CHAIN: list[str] = (
    [p.strip().lower() for p in _env_failover.split(",") if p.strip()]
    if _env_failover
    else []  # Empty = derived at runtime from available credentials
)

# Token budgets. Modes with LARGE_LENS_THRESHOLD or more active lenses get the larger budget.
ANALYSIS_MAX_TOKENS: int = 2560
ANALYSIS_MAX_TOKENS_LARGE: int = 4096
LARGE_LENS_THRESHOLD: int = 7
CONDUCTOR_MAX_TOKENS: int = 1024
ADAPTIVE_MAX_TOKENS: int = 1024
INTERVENTION_MAX_TOKENS: int = 512
ISSUE_ANALYSIS_MAX_TOKENS: int = 1536
SUMMARY_MAX_TOKENS: int = 2048

# Turn timer (milliseconds)
TURN_TIMER_MIN_MS: int = 60_000
TURN_TIMER_MAX_MS: int = 1_800_000
TURN_TIMER_DEFAULT_MS: int = int(os.getenv("TURN_TIMER_DEFAULT_MS", "180000"))

# Intervention polling
INTERVENTION_CHECK_DELAY_SECONDS: float = float(os.getenv("INTERVENTION_CHECK_DELAY_SECONDS", "4.0"))
INTERVENTION_COOLDOWN_MESSAGES: int = 3
ISSUE_POLL_INTERVAL_SECONDS: float = float(os.getenv("ISSUE_POLL_INTERVAL_SECONDS", "30.0"))

# Relationship context used when a session record carries none
DEFAULT_CONTEXT_MODE: str = os.getenv("DEFAULT_CONTEXT_MODE", "intimate")

# Display name the mediator speaks as
MEDIATOR_NAME: str = "Parallax"
