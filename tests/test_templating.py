"""Tests for placeholder rendering."""

from peopleos.utils.templating import render_placeholders, render_template


class TestRenderTemplate:

    def test_single_and_percent_braces(self):
        assert render_template("Hi {name}, %{role}", {"name": "Ada", "role": "CTO"}) == "Hi Ada, CTO"

    def test_unknown_key_left_visible(self):
        assert render_template("Hi {name} {missing}", {"name": "Ada"}) == "Hi Ada {missing}"

    def test_none_template(self):
        assert render_template(None, {"name": "Ada"}) == ""

    def test_double_braces(self):
        text = "Open {{ assessment_link }} before {deadline}"
        result = render_placeholders(text, {"assessment_link": "https://x", "deadline": "Friday"})
        assert result == "Open https://x before Friday"
