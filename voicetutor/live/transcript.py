from __future__ import annotations

import itertools
from typing import List

from voicetutor.contracts import TranscriptEntry
from voicetutor.nlp.structured import parse_structured


class TranscriptReconciler:
    """
    Accumulates streamed partial transcriptions per speaker and finalizes
    them into ordered entries at each turn-complete boundary.
    """

    def __init__(self) -> None:
        self._input: List[str] = []
        self._output: List[str] = []
        self._entries: List[TranscriptEntry] = []
        self._ids = itertools.count(1)

    @property
    def live_input(self) -> str:
        return "".join(self._input)

    @property
    def live_output(self) -> str:
        return "".join(self._output)

    @property
    def entries(self) -> tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def add_input(self, text: str) -> str:
        if text:
            self._input.append(text)
        return self.live_input

    def add_output(self, text: str) -> str:
        if text:
            self._output.append(text)
        return self.live_output

    def complete_turn(self) -> List[TranscriptEntry]:
        full_input = self.live_input.strip()
        full_output = self.live_output.strip()
        added: List[TranscriptEntry] = []

        if full_input:
            added.append(TranscriptEntry(id=next(self._ids), speaker="user", text=full_input))
        if full_output:
            added.append(
                TranscriptEntry(
                    id=next(self._ids),
                    speaker="model",
                    text=full_output,
                    reply=parse_structured(full_output),
                )
            )

        self._entries.extend(added)
        self.reset()
        return added

    def reset(self) -> None:
        self._input = []
        self._output = []
