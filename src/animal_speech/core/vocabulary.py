from __future__ import annotations

from typing import Iterable, Iterator

# Order matches the picture set shipped under resources/images/animals.
ANIMAL_NAMES = (
    "aardvark",
    "badger",
    "dolphin",
    "duck",
    "fox",
    "guinea pig",
    "hamster",
    "kangaroo",
    "meerkat",
    "mouse",
    "owl",
    "panda",
    "pig",
    "monkey",
    "elephant",
    "rhino",
    "giraffe",
    "penguin",
    "lion",
    "tiger",
    "snake",
    "fish",
    "dog",
    "cat",
    "rabbit",
    "bear",
    "frog",
    "lizard",
    "tortoise",
    "cow",
    "goat",
    "hippo",
    "horse",
    "sheep",
    "zebra",
    "donkey",
    "bird",
    "whale",
)

CONSTRAINT_TAG = "Animals"
IMAGE_SUFFIX = ".jpg"


def normalize(text: str) -> str:
    """Case-fold recognizer output and drop the periods it appends to utterances."""
    return str(text).casefold().replace(".", "").strip()


class Vocabulary:
    """Ordered, duplicate-free set of recognizable names."""

    def __init__(self, names: Iterable[str] = ANIMAL_NAMES) -> None:
        ordered: dict[str, None] = {}
        for name in names:
            cleaned = normalize(name)
            if cleaned:
                ordered.setdefault(cleaned, None)
        self._names = tuple(ordered)

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def __contains__(self, item: object) -> bool:
        return isinstance(item, str) and item in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def lookup(self, text: str) -> str | None:
        cleaned = normalize(text)
        return cleaned if cleaned in self._names else None

    @staticmethod
    def image_name(name: str) -> str:
        return f"{name}{IMAGE_SUFFIX}"


VOCABULARY = Vocabulary()
