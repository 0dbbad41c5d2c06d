"""Pseudonymous avatar generation."""

from __future__ import annotations

import random
from typing import Final

from confessio.schemas.confession import Avatar

ADJECTIVES: Final[tuple[str, ...]] = (
    "Neon", "Cosmic", "Glitchy", "Happy", "Sleepy", "Grumpy", "Shiny", "Retro", "Quantum",
)
ANIMALS: Final[tuple[str, ...]] = (
    "Panda", "Cat", "Fox", "Axolotl", "Badger", "Owl", "Raccoon", "Koala", "Gecko",
)
# Parallel to ANIMALS.
ICONS: Final[tuple[str, ...]] = ("🐼", "🐱", "🦊", "🦎", "🦡", "🦉", "🦝", "🐨", "🐊")
COLORS: Final[tuple[str, ...]] = (
    "#ef4444", "#f97316", "#f59e0b", "#84cc16", "#10b981",
    "#06b6d4", "#3b82f6", "#8b5cf6", "#d946ef", "#f43f5e",
)


def generate_avatar(rng: random.Random | None = None) -> Avatar:
    """Return a random "<Adjective> <Animal>" identity with matching icon."""
    rng = rng or random.Random()
    animal_idx = rng.randrange(len(ANIMALS))
    return Avatar(
        name=f"{rng.choice(ADJECTIVES)} {ANIMALS[animal_idx]}",
        icon=ICONS[animal_idx],
        color=rng.choice(COLORS),
    )
