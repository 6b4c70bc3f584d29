from __future__ import annotations

from pathlib import Path
import sys
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from guildrelay.config.settings import FormSettings
from guildrelay.relay.layout import (
    FORM_LAYOUT_PRESETS,
    FormLayout,
    resolve_form_layout,
    truncate_thread_name,
)


class FormLayoutTests(unittest.TestCase):
    def test_redact_drops_only_the_configured_position(self):
        layout = FORM_LAYOUT_PRESETS["heading-v2"]
        description = "H1###A###H2###B###H3###C###H4###D###H5###E###H6###F"

        sections = layout.split(description)
        redacted = layout.redact(sections)

        self.assertEqual(sections[5], "C")
        self.assertEqual(
            layout.join(redacted),
            "H1###A###H2###B###H3###H4###D###H5###E###H6###F",
        )
        self.assertEqual(redacted, sections[:5] + sections[6:])

    def test_bold_layout_redacts_the_tag_value_not_its_label(self):
        layout = FORM_LAYOUT_PRESETS["bold-v1"]
        sections = layout.split(
            "**What's your name?**\nJaina\n**How old are you?**\n20\n"
            "**Discord tag**\njaina#0001\n**What class?**\nMage\n"
        )

        redacted = layout.redact(sections)

        self.assertEqual(sections[5], "Discord tag")
        self.assertEqual(sections[6], "\njaina#0001\n")
        self.assertNotIn("jaina#0001", layout.join(redacted))
        self.assertIn("Discord tag", redacted)

    def test_redact_out_of_range_index_keeps_everything(self):
        layout = FORM_LAYOUT_PRESETS["heading-v2"]
        sections = layout.split("only###two")

        self.assertEqual(layout.redact(sections), ["only", "two"])

    def test_applicant_name_second_line(self):
        layout = FORM_LAYOUT_PRESETS["heading-v2"]
        sections = ["", " **1.** What's your name?\nThrall\n", " **2.** How old?\n30\n"]

        self.assertEqual(layout.applicant_name(sections), "Thrall")

    def test_applicant_name_last_line_skips_trailing_blank(self):
        layout = FORM_LAYOUT_PRESETS["bold-v1"]
        sections = layout.split("**What's your name?**\nline one\nJaina\n**Age**\n20")

        self.assertEqual(layout.applicant_name(sections), "Jaina")

    def test_applicant_name_missing_section_or_line(self):
        layout = FORM_LAYOUT_PRESETS["heading-v2"]

        self.assertIsNone(layout.applicant_name(["only"]))
        self.assertIsNone(layout.applicant_name(["", "single line"]))
        self.assertIsNone(layout.applicant_name(["", "question\n   \n"]))

    def test_truncate_thread_name(self):
        self.assertEqual(truncate_thread_name("Alexandria the Great", 15), "Alexandria the ")
        self.assertEqual(truncate_thread_name("Short", 15), "Short")

    def test_layout_rejects_invalid_values(self):
        with self.assertRaises(ValueError):
            FormLayout(version="x", delimiter="", redacted_index=1, name_section_index=1)
        with self.assertRaises(ValueError):
            FormLayout(
                version="x",
                delimiter="###",
                redacted_index=1,
                name_section_index=1,
                name_line="first",
            )

    def test_resolve_preset_without_overrides(self):
        layout = resolve_form_layout(FormSettings(layout="bold-v1"))

        self.assertIs(layout, FORM_LAYOUT_PRESETS["bold-v1"])

    def test_resolve_applies_overrides(self):
        layout = resolve_form_layout(
            FormSettings(layout="heading-v2", redacted_index=7, name_line="last")
        )

        self.assertEqual(layout.version, "heading-v2+custom")
        self.assertEqual(layout.delimiter, "###")
        self.assertEqual(layout.redacted_index, 7)
        self.assertEqual(layout.name_section_index, 1)
        self.assertEqual(layout.name_line, "last")


if __name__ == "__main__":
    unittest.main()
