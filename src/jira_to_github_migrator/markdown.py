"""Convert JIRA wiki markup to GitHub-flavored Markdown."""

from __future__ import annotations

import re
from typing import Final

_TOKEN: Final[re.Pattern[str]] = re.compile(r"\x00(\d+)\x00")

_CODE_BLOCK: Final[re.Pattern[str]] = re.compile(r"\{code(?::([^}]*))?\}(.*?)\{code\}", re.DOTALL)
_NOFORMAT: Final[re.Pattern[str]] = re.compile(r"\{noformat(?::[^}]*)?\}(.*?)\{noformat\}", re.DOTALL)
_INLINE_CODE: Final[re.Pattern[str]] = re.compile(r"\{\{(.+?)\}\}")

_NUMBERED: Final[re.Pattern[str]] = re.compile(r"^(#+)\s+(.*)$", re.MULTILINE)
_HEADING: Final[re.Pattern[str]] = re.compile(r"^h([1-6])\.\s+(.+)$", re.MULTILINE)
_BOLD: Final[re.Pattern[str]] = re.compile(r"(?<![\w*])\*(?=\S)([^*\n]+?)(?<=\S)\*(?![\w*])")
_ITALIC: Final[re.Pattern[str]] = re.compile(r"(?<![\w_])_(?=\S)([^_\n]+?)(?<=\S)_(?![\w_])")
_STRIKE: Final[re.Pattern[str]] = re.compile(r"(?<![^\s(])-([^\s-](?:[^\n]*?[^\s-])?)-(?=[\s.,;:!?)]|$)", re.MULTILINE)
_RULE: Final[re.Pattern[str]] = re.compile(r"^-{4,}\s*$", re.MULTILINE)

_BQ: Final[re.Pattern[str]] = re.compile(r"^bq\.\s+(.*)$", re.MULTILINE)
_QUOTE: Final[re.Pattern[str]] = re.compile(r"\{quote\}(.*?)\{quote\}", re.DOTALL)
_PANEL: Final[re.Pattern[str]] = re.compile(r"\{(panel|info|note|warning|tip)(?::([^}]*))?\}(.*?)\{\1\}", re.DOTALL)

_ALIASED_LINK: Final[re.Pattern[str]] = re.compile(r"\[([^|\]\n]+)\|([^\]\n]+)\]")
_BARE_LINK: Final[re.Pattern[str]] = re.compile(r"\[((?:https?|ftp|mailto|file):[^\]\s|]+)\](?!\()")
_BULLET: Final[re.Pattern[str]] = re.compile(r"^(\*+)\s+(.*)$", re.MULTILINE)
_TABLE_HEADER: Final[re.Pattern[str]] = re.compile(r"^\|\|(.+?)\|\|\s*$", re.MULTILINE)
_COLOR: Final[re.Pattern[str]] = re.compile(r"\{color(?::[^}]*)?\}(.*?)\{color\}", re.DOTALL)
_IMAGE: Final[re.Pattern[str]] = re.compile(r"!([^!|\s][^!|\n]*?)(?:\|[^!\n]*)?!")
_MENTION: Final[re.Pattern[str]] = re.compile(r"\[~([^\]\n]+)\]")


class _Shield:
    """Holds already-converted fragments out of reach of later rules."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def hold(self, text: str) -> str:
        self._parts.append(text)
        return f"\x00{len(self._parts) - 1}\x00"

    def restore(self, text: str) -> str:
        return _TOKEN.sub(lambda m: self._parts[int(m.group(1))], text)


def _code_language(params: str | None) -> str:
    """Pick the language from {code:...} parameters (ignores title=, borderStyle=, ...)."""
    for param in (params or "").split("|"):
        key, sep, value = param.partition("=")
        if not sep and key.strip():
            return key.strip()
        if key.strip() == "language":
            return value.strip()
    return ""


def _fence(content: str, language: str = "") -> str:
    return f"```{language}\n{content.strip(chr(10))}\n```"


def _as_blockquote(content: str, title: str | None = None) -> str:
    lines = content.strip("\n").split("\n")
    if title:
        lines.insert(0, f"**{title}**")
    return "\n".join(f"> {line}" for line in lines)


def _panel_title(params: str | None) -> str | None:
    for param in (params or "").split("|"):
        key, _, value = param.partition("=")
        if key.strip() == "title" and value.strip():
            return value.strip()
    return None


def _table_header(match: re.Match[str]) -> str:
    cells = [cell.strip() for cell in match.group(1).split("||")]
    header = "| " + " | ".join(cells) + " |"
    delimiter = "| " + " | ".join("---" for _ in cells) + " |"
    return f"{header}\n{delimiter}"


def convert_jira_to_markdown(jira_text: str | None) -> str:
    """Convert JIRA wiki markup to GitHub-flavored Markdown.

    Code blocks and inline code are converted first and kept out of reach of
    every other rule. Markup that is not recognised is left as literal text.
    """
    if not jira_text:
        return ""

    shield = _Shield()
    text = jira_text

    text = _CODE_BLOCK.sub(lambda m: shield.hold(_fence(m.group(2), _code_language(m.group(1)))), text)
    text = _NOFORMAT.sub(lambda m: shield.hold(_fence(m.group(1))), text)
    text = _INLINE_CODE.sub(lambda m: shield.hold(f"`{m.group(1)}`"), text)

    # JIRA numbered lists start with '#': convert them before headings emit Markdown ones
    text = _NUMBERED.sub(lambda m: "   " * (len(m.group(1)) - 1) + f"1. {m.group(2)}", text)
    text = _HEADING.sub(lambda m: "#" * int(m.group(1)) + f" {m.group(2)}", text)

    text = _BOLD.sub(r"**\1**", text)
    text = _ITALIC.sub(r"*\1*", text)
    text = _STRIKE.sub(r"~~\1~~", text)
    text = _RULE.sub("---", text)

    text = _BQ.sub(r"> \1", text)
    text = _QUOTE.sub(lambda m: _as_blockquote(m.group(1)), text)
    text = _PANEL.sub(lambda m: _as_blockquote(m.group(3), _panel_title(m.group(2))), text)

    text = _ALIASED_LINK.sub(r"[\1](\2)", text)
    text = _BARE_LINK.sub(r"<\1>", text)

    text = _BULLET.sub(lambda m: "  " * (len(m.group(1)) - 1) + f"- {m.group(2)}", text)
    text = _TABLE_HEADER.sub(_table_header, text)
    text = text.replace("||", "|")

    text = _COLOR.sub(r"\1", text)
    text = _IMAGE.sub(r"![\1](\1)", text)
    text = _MENTION.sub(r"@\1", text)

    return shield.restore(text)
