"""
Recall-confidence ratings.

The four-way rating is a closed set; every scheduling branch switches on it.
"""

from __future__ import annotations

from enum import Enum

from recall.core.errors import InvalidArgument


class Rating(str, Enum):
    """Self-reported recall confidence for a single review."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @classmethod
    def coerce(cls, value: Rating | str) -> Rating:
        """
        Convert user input to a Rating.

        Accepts a Rating, its value ("good") or its name ("GOOD"),
        case-insensitively.

        Raises:
            InvalidArgument: If the value is not one of the four ratings.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidArgument(
            f"Invalid rating {value!r}; expected one of "
            f"{', '.join(r.value for r in cls)}"
        )

    @property
    def label(self) -> str:
        """Button label."""
        return self.value.title()

    @property
    def is_lapse(self) -> bool:
        return self is Rating.AGAIN

    @property
    def shortcut(self) -> str:
        """Single-key shortcut used by the interactive session."""
        return self.value[0]


def get_rating_label(rating: Rating | str) -> str:
    return Rating.coerce(rating).label
