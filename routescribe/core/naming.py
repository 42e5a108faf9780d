"""
Naming helpers mirroring the framework's string conventions
(snake_case columns, plural table names, Title Case labels).
"""

from __future__ import annotations

import re

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_UNCOUNTABLE = frozenset({"data", "information", "equipment", "media", "metadata", "feedback", "news", "series"})


def snake(name: str) -> str:
    """BlogPost → blog_post."""
    return _CAMEL_BOUNDARY.sub("_", name).replace("-", "_").lower()


def plural(word: str) -> str:
    """Naive English pluralization, enough for table names and URL segments."""
    lowered = word.lower()
    if not word or lowered in _UNCOUNTABLE:
        return word
    if lowered.endswith("s") and not lowered.endswith(("ss", "us")):
        # already plural
        return word
    if lowered.endswith("y") and len(word) > 1 and lowered[-2] not in "aeiou":
        return word[:-1] + "ies"
    if lowered.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def singular(word: str) -> str:
    lowered = word.lower()
    if lowered.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lowered.endswith(("sses", "xes", "zes", "ches", "shes")):
        return word[:-2]
    if lowered.endswith("s") and not lowered.endswith("ss"):
        return word[:-1]
    return word


def table_name(class_short_name: str) -> str:
    """Default Eloquent table: snake-case plural of the class name."""
    parts = snake(class_short_name).split("_")
    parts[-1] = plural(parts[-1])
    return "_".join(parts)


def words(field: str) -> str:
    return field.replace("_", " ").replace(".", " ").strip()


def title(field: str) -> str:
    return " ".join(part.capitalize() for part in words(field).split())
