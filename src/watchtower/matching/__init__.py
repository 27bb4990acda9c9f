"""Glob pattern matching and allow/deny policy, shared by server and agent."""

from watchtower.matching.pattern import (
    PatternMatcher,
    compile_pattern,
    matches_any,
    suggest_pattern,
)
from watchtower.matching.policy import Decision, evaluate

__all__ = [
    "Decision",
    "PatternMatcher",
    "compile_pattern",
    "evaluate",
    "matches_any",
    "suggest_pattern",
]
