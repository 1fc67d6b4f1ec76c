"""
"Did you mean" suggestions for mistyped command names.

A child of the command is suggested for a typed token when
- its name is within `suggestions_minimum_distance` edits of the token
  (case-insensitive Levenshtein), or
- its name starts with the token (case-insensitive), or
- the token matches one of its explicit `suggest_for` aliases.

Only available children are considered (not hidden, not deprecated, not the
help command). The result keeps declaration order and holds each name once.
"""
from .utils import *


def levenshtein(source, target, /, *, ignore_case=True):
    """
    Edit distance between two strings (insertions, deletions and substitutions).

    Examples
    - levenshtein("lsit", "list") -> 2
    - levenshtein("Status", "status") -> 0
    """
    if ignore_case:
        source, target = source.lower(), target.lower()
    if len(source) < len(target):
        source, target = target, source
    if not target:
        return len(source)

    previous = list(range(len(target) + 1))
    for i, left in enumerate(source, 1):
        current = [i]
        for j, right in enumerate(target, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (left != right),
            ))
        previous = current
    return previous[-1]


def suggestions_for(command, typed, /):
    """
    Return the names of the available children of `command` close to `typed`.
    """
    distance = command.suggestions_minimum_distance
    if distance <= 0:
        distance = 2

    suggestions = []
    for child in command.children:
        if not child.is_available:
            continue
        if (
            levenshtein(typed, child.name) <= distance or
            child.name.lower().startswith(typed.lower()) or
            any(typed.lower() == alias.lower() for alias in child.suggest_for)
        ):
            if child.name not in suggestions:
                suggestions.append(child.name)
    return suggestions


def find_suggestion(command, typed, /):
    """
    Render the suggestions for `typed` as an error-message suffix.

    Returns "" when suggestions are disabled or nothing matched.
    """
    if command.disable_suggestions:
        return ""
    if not (suggestions := suggestions_for(command, typed)):
        return ""
    return "\n\nDid you mean this?\n" + "".join(f"\t{name}\n" for name in suggestions)


__all__ = (
    "levenshtein",
    "suggestions_for",
    "find_suggestion",
)
