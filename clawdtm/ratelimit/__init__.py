"""Fixed-window rate limiting."""

from clawdtm.ratelimit.gate import REGISTRATION_KEY, RateDecision, RateGate, agent_write_key

__all__ = ["agent_write_key", "RateDecision", "RateGate", "REGISTRATION_KEY"]
