from __future__ import annotations

from typing import Iterable, List

from voicetutor.contracts import TranscriptEntry


def _esc(text: str) -> str:
    return (text or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _multiline(text: str) -> str:
    return _esc(text).replace("\n", "<br/>")


def _render_model(entry: TranscriptEntry, target_language: str) -> str:
    reply = entry.reply
    if reply is None or not reply.is_structured:
        return f"<div class='model'><b>Miss Laura:</b> {_multiline(entry.text)}</div>"
    sections = (
        (f"Original ({_esc(target_language)})", reply.original),
        ("Español", reply.translation),
        ("Pregunta", reply.question),
    )
    parts = ["<div class='model'><b>Miss Laura:</b>"]
    for title, body in sections:
        if body is None:
            continue
        parts.append(f"<div class='section'><i>{title}</i><br/>{_multiline(body)}</div>")
    parts.append("</div>")
    return "".join(parts)


def render_transcript_html(
    entries: Iterable[TranscriptEntry],
    live_input: str = "",
    live_output: str = "",
    target_language: str = "English",
) -> str:
    # oldest first, live captions last
    parts: List[str] = []
    for entry in entries:
        if entry.speaker == "user":
            parts.append(f"<div class='user'><b>You:</b> {_multiline(entry.text)}</div>")
        else:
            parts.append(_render_model(entry, target_language))
    if live_input.strip():
        parts.append(f"<div class='live'><i>You (live):</i> {_multiline(live_input)}</div>")
    if live_output.strip():
        parts.append(f"<div class='live'><i>Miss Laura (live):</i> {_multiline(live_output)}</div>")
    if not parts:
        return "<div class='empty'>Press Start and say hello.</div>"
    return "\n".join(parts)
