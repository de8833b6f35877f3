"""Rigid body attached below a joint."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Link:
    """Terminal link descriptor. Only the name is carried, for display."""
    name: str

    def __str__(self) -> str:
        return self.name
