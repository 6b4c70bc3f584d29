"""Upstream application form layouts.

The form bot posts each submission as one embed whose description is a single
markdown blob. Fields are separated by a marker substring, and the position of
the contact-tag field and of the applicant's name depends on which version of
the form is deployed. A ``FormLayout`` captures one such version so operators
can switch it from configuration when the form changes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

if TYPE_CHECKING:
    from guildrelay.config.settings import FormSettings


NAME_LINE_POLICIES = ("second", "last")
DEFAULT_THREAD_NAME = "Application"


@dataclass(frozen=True)
class FormLayout:
    version: str
    delimiter: str
    redacted_index: int
    name_section_index: int
    name_line: str = "second"

    def __post_init__(self) -> None:
        if not self.delimiter:
            raise ValueError("delimiter cannot be empty.")
        if self.redacted_index < 0:
            raise ValueError("redacted_index must be >= 0.")
        if self.name_section_index < 0:
            raise ValueError("name_section_index must be >= 0.")
        if self.name_line not in NAME_LINE_POLICIES:
            raise ValueError("name_line must be 'second' or 'last'.")

    def split(self, description: str) -> list[str]:
        return description.split(self.delimiter)

    def join(self, sections: Sequence[str]) -> str:
        return self.delimiter.join(sections)

    def redact(self, sections: Sequence[str]) -> list[str]:
        """Drop the contact-tag section by position.

        Positional on purpose: a reordered form drops the wrong field rather
        than guessing by content. An index past the end drops nothing.
        """
        return [section for index, section in enumerate(sections) if index != self.redacted_index]

    def applicant_name(self, sections: Sequence[str]) -> Optional[str]:
        """Pick the applicant's name out of already-redacted sections."""
        if self.name_section_index >= len(sections):
            return None

        lines = sections[self.name_section_index].split("\n")
        if self.name_line == "second":
            if len(lines) < 2:
                return None
            candidate = lines[1]
        else:
            # Trailing newline before the next delimiter leaves an empty tail.
            candidate = next((line for line in reversed(lines) if line.strip()), "")

        candidate = candidate.strip()
        return candidate or None


FORM_LAYOUT_PRESETS: Mapping[str, FormLayout] = {
    # "### **1.** What's your name?\n<name>\n### **2.** ..."
    "heading-v2": FormLayout(
        version="heading-v2",
        delimiter="###",
        redacted_index=5,
        name_section_index=1,
        name_line="second",
    ),
    # "**What's your name?**\n<name>\n**How old are you?**\n<age>\n**Discord tag**\n<tag>\n..."
    # Each field spends two sections here: odd indexes are labels, even ones values.
    "bold-v1": FormLayout(
        version="bold-v1",
        delimiter="**",
        redacted_index=6,
        name_section_index=2,
        name_line="last",
    ),
}


def truncate_thread_name(name: str, max_length: int) -> str:
    # Character slice, no word-boundary handling.
    return name[:max_length]


def resolve_form_layout(form: "FormSettings") -> FormLayout:
    """Build the effective layout from a preset plus configured overrides."""

    layout = FORM_LAYOUT_PRESETS[form.layout]
    overrides = {}
    if form.delimiter is not None:
        overrides["delimiter"] = form.delimiter
    if form.redacted_index is not None:
        overrides["redacted_index"] = form.redacted_index
    if form.name_section_index is not None:
        overrides["name_section_index"] = form.name_section_index
    if form.name_line is not None:
        overrides["name_line"] = form.name_line

    if not overrides:
        return layout
    return replace(layout, version=f"{layout.version}+custom", **overrides)
