"""Core utilities for the MatchFyn backend."""
