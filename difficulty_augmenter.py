from __future__ import annotations

import random
from typing import List, Optional

from beatmap_models import Beatmap, LaneType, Note


_AUGMENT_LANES = (LaneType.CENTER, LaneType.RIM)


def augment(beatmap: Beatmap, *, rng: Optional[random.Random] = None) -> Beatmap:
    """Return a harder copy of beatmap with one extra note between each adjacent pair.

    The extra note sits at the (floored) midpoint of the pair and its lane is drawn
    uniformly from Center/Rim. Pass a seeded random.Random for reproducible output.
    """
    random_generator = rng if rng is not None else random.Random()

    original_notes = list(beatmap.notes)
    extra_notes: List[Note] = []
    for left_note, right_note in zip(original_notes, original_notes[1:]):
        midpoint_ms = (int(left_note.time_ms) + int(right_note.time_ms)) // 2
        lane = random_generator.choice(_AUGMENT_LANES)
        extra_notes.append(Note(time_ms=midpoint_ms, lane=lane))

    return beatmap.with_notes(original_notes + extra_notes)


def _run_unit_tests() -> None:
    source = Beatmap(
        notes=(
            Note(time_ms=1000, lane=LaneType.CENTER),
            Note(time_ms=2000, lane=LaneType.RIM),
            Note(time_ms=3000, lane=LaneType.CENTER),
        )
    )
    harder = augment(source, rng=random.Random(7))
    assert len(harder.notes) == 5
    assert [note.time_ms for note in harder.notes] == [1000, 1500, 2000, 2500, 3000]
    assert len(source.notes) == 3


if __name__ == "__main__":
    _run_unit_tests()
    print("difficulty_augmenter.py: ok")
