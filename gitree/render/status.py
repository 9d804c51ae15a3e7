"""One-line status formatting: ``[[ branch | indicators ]]``."""

from typing import List

from rich.console import Console
from rich.text import Text

from ..core.types import StatusSnapshot

# Counts above this are shown as "99+"
MAX_DISPLAY_COUNT = 99

STANDARD_BRACKET_STYLE = "bright_black"
ATTENTION_BRACKET_STYLE = "yellow"

INDICATOR_STYLES = {
    "ahead": "green",
    "behind": "red",
    "stash": "red",
    "changes": "red",
    "no_remote": "bright_black",
    "error": "red",
}


def _format_count(count: int) -> str:
    if count > MAX_DISPLAY_COUNT:
        return f"{MAX_DISPLAY_COUNT}+"
    return str(count)


def status_indicators(status: StatusSnapshot) -> List[Text]:
    """Return the indicator segments for a status, in display order."""
    indicators = []
    if status.ahead > 0:
        indicators.append(Text(f"↑{_format_count(status.ahead)}", style=INDICATOR_STYLES["ahead"]))
    if status.behind > 0:
        indicators.append(Text(f"↓{_format_count(status.behind)}", style=INDICATOR_STYLES["behind"]))
    if status.has_stashes:
        indicators.append(Text("$", style=INDICATOR_STYLES["stash"]))
    if status.has_changes:
        indicators.append(Text("*", style=INDICATOR_STYLES["changes"]))
    if not status.has_remote:
        indicators.append(Text("○", style=INDICATOR_STYLES["no_remote"]))
    if status.status_error:
        indicators.append(Text("error", style=INDICATOR_STYLES["error"]))
    return indicators


def status_text(status: StatusSnapshot) -> Text:
    """Build the styled status segment.

    Brackets are gray when the status needs no attention and yellow
    otherwise.
    """
    bracket_style = STANDARD_BRACKET_STYLE if status.is_standard() else ATTENTION_BRACKET_STYLE

    text = Text()
    text.append("[[", style=bracket_style)
    text.append(f" {status.branch}")

    indicators = status_indicators(status)
    if indicators:
        text.append(" | ")
        text.append(Text(" ").join(indicators))

    text.append(" ")
    text.append("]]", style=bracket_style)
    return text


def to_ansi(text: Text, color: bool) -> str:
    """Render styled text to a string, with ANSI escapes only when ``color`` is set."""
    if not color:
        return text.plain

    console = Console(force_terminal=True, color_system="standard", width=10_000)
    with console.capture() as capture:
        console.print(text, end="", soft_wrap=True)
    return capture.get()


def format_status(status: StatusSnapshot, color: bool = False) -> str:
    """Format a status snapshot for display.

    Args:
        status: Snapshot to format
        color: Emit ANSI colors

    Returns:
        e.g. ``[[ main | ↑2 ↓1 * ]]`` or ``[[ main ]]`` when nothing needs attention
    """
    return to_ansi(status_text(status), color)
