# -*- coding: utf-8 -*-
"""
tone_engine.py

Deterministic project tag colors.

Each project name hashes to a base slot in a fixed palette. Slots already
handed out in this process are skipped (circular forward scan) so projects
shown together stay visually distinct. Once every slot is taken, new
projects fall back to their base slot and duplicates are accepted.

Assignments are sticky: a project keeps its first color for the lifetime
of the allocator, regardless of call order.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Set, Tuple


PROJECT_TONES: Tuple[str, ...] = (
    "#ecf1ff",  # indigo softer
    "#e2fcfe",  # cyan softer
    "#eafdf1",  # green softer
    "#fff4e6",  # orange softer
    "#fdf1f8",  # pink softer
    "#ecf7fe",  # sky softer
    "#fef0b9",  # amber softer
    "#d9e9fe",  # blue softer
    "#ebe6fe",  # violet softer
    "#d6f0fe",  # light sky softer
    "#ffeff0",  # rose softer
    "#e8fbc4",  # lime softer
    "#fef8dd",  # yellow softer
    "#dde4fe",  # periwinkle softer
    "#d6fae3",  # mint softer
    "#f9e3fe",  # fuchsia softer
    "#fee1e5",  # rose blush
    "#ddfbe0",  # soft mint
    "#fff1d6",  # amber light
    "#dfefff",  # powder blue
    "#daf8ff",  # aqua soft
    "#ffe6ff",  # light magenta
    "#e3fcef",  # emerald soft
    "#fde2f1",  # pink blush
)

HASH_SEED = 5381


def hash_project_name(name: Optional[str]) -> int:
    """djb2 (xor variant), kept to 32 bits so it is stable across runs."""
    h = HASH_SEED
    for ch in name or "":
        h = ((h * 33) ^ ord(ch)) & 0xFFFFFFFF
    return h


class ToneAllocator:
    def __init__(self, palette: Iterable[str] = PROJECT_TONES) -> None:
        tones = tuple(str(t) for t in palette)
        if not tones:
            raise ValueError("tone palette must contain at least one color")
        self._palette: Tuple[str, ...] = tones
        self._assigned: Dict[str, str] = {}
        self._used: Set[int] = set()
        self._warned_exhausted = False

    @property
    def palette(self) -> Tuple[str, ...]:
        return self._palette

    @property
    def used_count(self) -> int:
        return len(self._used)

    @property
    def exhausted(self) -> bool:
        return len(self._used) >= len(self._palette)

    def assign(self, project_name: Optional[str]) -> str:
        """
        Return the tone for a project. None and "" are the same project.
        """
        key = project_name or ""
        prior = self._assigned.get(key)
        if prior is not None:
            return prior

        size = len(self._palette)
        base = hash_project_name(key) % size
        index = base
        for _ in range(size):
            if index not in self._used:
                break
            index = (index + 1) % size
        else:
            # Every slot is taken; the scan wrapped back to base.
            index = base
            if not self._warned_exhausted:
                self._warned_exhausted = True
                print(
                    f"[TONES] palette exhausted ({size} tones); new projects will share colors",
                    flush=True,
                )

        self._used.add(index)
        tone = self._palette[index]
        self._assigned[key] = tone
        return tone

    def assignments(self) -> Dict[str, str]:
        return dict(self._assigned)

    def reset(self) -> None:
        self._assigned.clear()
        self._used.clear()
        self._warned_exhausted = False


# Process-wide allocator used by the UI helpers below.
_DEFAULT = ToneAllocator()


def default_allocator() -> ToneAllocator:
    return _DEFAULT


def project_tone(project_name: Optional[str]) -> str:
    return _DEFAULT.assign(project_name)


def tones() -> Tuple[str, ...]:
    return _DEFAULT.palette


def reset_tones() -> None:
    _DEFAULT.reset()
