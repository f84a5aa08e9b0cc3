import base64
import io

import pytest

from fleet.clipboard import ClipboardUnavailable, Osc52Clipboard, SystemClipboard
from fleet.workflows import AnswerPrompter, Cancelled, Collected, Step, Wizard


def _wizard():
    return Wizard([
        Step("min", "Min:", "16", required=True),
        Step("note", "Note:", ""),
    ])


def test_wizard_collects_in_order():
    prompter = AnswerPrompter({"min": "18", "note": ""})
    result = _wizard().run(prompter)
    assert isinstance(result, Collected)
    assert result["min"] == "18"
    assert result["note"] == ""
    assert prompter.asked == ["min", "note"]


def test_required_blank_answer_cancels():
    prompter = AnswerPrompter({"min": "  ", "note": "x"})
    assert _wizard().run(prompter) == Cancelled(step="min")
    assert prompter.asked == ["min"]


def test_missing_answer_cancels_at_that_step():
    assert _wizard().run(AnswerPrompter({"min": "18"})) == Cancelled(step="note")


def test_describe_lists_defaults():
    assert _wizard().describe()[0] == {"name": "min", "label": "Min:", "default": "16", "required": True}


class _Tty(io.StringIO):
    def isatty(self):
        return True


def test_osc52_writes_escape_sequence():
    stream = _Tty()
    Osc52Clipboard(stream).copy("http://x/files/a.bin")
    payload = base64.b64encode(b"http://x/files/a.bin").decode("ascii")
    assert stream.getvalue() == f"\x1b]52;c;{payload}\x07"


def test_osc52_refuses_non_terminal():
    with pytest.raises(ClipboardUnavailable):
        Osc52Clipboard(io.StringIO()).copy("x")


def test_system_clipboard_without_tools():
    with pytest.raises(ClipboardUnavailable):
        SystemClipboard(commands=[["definitely-not-a-clipboard-tool"]]).copy("x")
