"""Markdown helpers for generated artifacts."""

import re

_JS_KEYWORDS = re.compile(r"\b(function|const|let|var|class|import|export)\b")

# Ordered (language, first-line patterns). A row matches when every pattern is found;
# first match wins, so more specific rows come first.
CODE_LANGUAGE_MARKERS: list[tuple[str, tuple[re.Pattern, ...]]] = [
    ("java", (re.compile(r"public class|private class|@Test"),)),
    ("html", (re.compile(r"<html|<!DOCTYPE|<div|<p\b"),)),
    ("sql", (re.compile(r"\b(SELECT|INSERT|UPDATE|DELETE)\b"),)),
    ("tsx", (_JS_KEYWORDS, re.compile(r"tsx"))),
    ("jsx", (_JS_KEYWORDS, re.compile(r"jsx"))),
    ("javascript", (_JS_KEYWORDS,)),
]
DEFAULT_CODE_LANGUAGE = "plaintext"

_FENCE_RE = re.compile(r"```([^\n`]*)\n(.*?)```", re.DOTALL)


def detect_code_language(code: str) -> str:
    """Pick a fence language from the first line of a code block."""
    stripped = code.strip()
    first_line = stripped.split("\n", 1)[0] if stripped else ""

    for language, patterns in CODE_LANGUAGE_MARKERS:
        if all(pattern.search(first_line) for pattern in patterns):
            return language

    return DEFAULT_CODE_LANGUAGE


def annotate_code_fences(markdown_text: str) -> str:
    """Add a language to every fenced code block that lacks one."""

    def _replace(match: re.Match) -> str:
        language = match.group(1).strip()
        body = match.group(2)
        if not language:
            language = detect_code_language(body)
        return f"```{language}\n{body}```"

    return _FENCE_RE.sub(_replace, markdown_text)
