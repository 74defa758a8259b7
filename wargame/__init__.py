"""Multiplayer LLM wargame facilitator."""
