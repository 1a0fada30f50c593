from __future__ import annotations

from voicetutor.contracts import TranscriptEntry
from voicetutor.nlp.structured import parse_structured
from voicetutor.ui.transcript_view import render_transcript_html


def _model(entry_id: int, text: str) -> TranscriptEntry:
    return TranscriptEntry(id=entry_id, speaker="model", text=text, reply=parse_structured(text))


def test_render_structured_reply_shows_sections() -> None:
    entries = [
        TranscriptEntry(id=1, speaker="user", text="hola"),
        _model(2, "ORIGINAL:\nHi there!\nESPAÑOL:\n¡Hola!\nPREGUNTA:\nHow are you?"),
    ]
    html = render_transcript_html(entries, target_language="English")
    assert html.index("You:") < html.index("Miss Laura:")
    assert "Original (English)" in html
    assert "Español" in html and "Pregunta" in html
    assert "How are you?" in html


def test_render_unstructured_reply_shows_raw_text() -> None:
    html = render_transcript_html([_model(1, "Just chatting")])
    assert "Just chatting" in html
    assert "Original (" not in html


def test_render_escapes_markup_and_live_captions() -> None:
    html = render_transcript_html(
        [TranscriptEntry(id=1, speaker="user", text="<b>1 & 2</b>")],
        live_input="still <talking>",
        live_output="",
    )
    assert "&lt;b&gt;1 &amp; 2&lt;/b&gt;" in html
    assert "You (live):" in html
    assert "still &lt;talking&gt;" in html
    assert "Miss Laura (live)" not in html


def test_render_empty_transcript_placeholder() -> None:
    assert "Press Start" in render_transcript_html([])
