# flowpatch/structural/expressions.py
"""
Syntactic scanning of n8n `{{ ... }}` expressions inside node parameters.
No expression is evaluated; these helpers only look at text.
"""
from __future__ import annotations

import re
from typing import Any, Iterator, List

EXPRESSION_RE = re.compile(r"\{\{(.*?)\}\}", re.S)
ASSIGNMENT_MARKER = "="


def iter_parameter_strings(value: Any) -> Iterator[str]:
    """Yield every string found anywhere inside a parameters structure."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for v in value.values():
            yield from iter_parameter_strings(v)
    elif isinstance(value, (list, tuple)):
        for v in value:
            yield from iter_parameter_strings(v)


def find_expressions(parameters: Any) -> List[str]:
    """All `{{ ... }}` expressions (including braces), in parameter order."""
    found = []
    for text in iter_parameter_strings(parameters):
        found.extend(m.group(0) for m in EXPRESSION_RE.finditer(text))
    return found


def is_marked(expression: str) -> bool:
    m = EXPRESSION_RE.fullmatch(expression)
    body = m.group(1) if m else expression
    return body.lstrip().startswith(ASSIGNMENT_MARKER)


def unmarked_expressions(parameters: Any) -> List[str]:
    return [e for e in find_expressions(parameters) if not is_marked(e)]


def unbalanced_strings(parameters: Any) -> List[str]:
    """Strings whose `{{` and `}}` counts differ."""
    return [t for t in iter_parameter_strings(parameters) if t.count("{{") != t.count("}}")]
