"""
Agrégation des preuves photo d'un lot.

Règle unique : union ordonnée (première apparition), doublons exacts retirés.
L'ancien champ `image_url` (une seule photo) est replié en liste d'un élément.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping


def _field(line: Any, name: str) -> Any:
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


def normalize_evidence(image_urls: Iterable[str] | None = None, image_url: str | None = None) -> list[str]:
    """Forme canonique d'une seule ligne : liste ordonnée sans doublon."""
    merged: list[str] = []
    seen: set[str] = set()
    candidates = list(image_urls or [])
    if image_url:
        candidates.append(image_url)
    for url in candidates:
        if not isinstance(url, str) or not url:
            continue
        if url in seen:
            continue
        seen.add(url)
        merged.append(url)
    return merged


def merge_evidence(lines: Iterable[Any]) -> list[str]:
    merged: list[str] = []
    seen: set[str] = set()
    for line in lines:
        for url in normalize_evidence(_field(line, "image_urls"), _field(line, "image_url")):
            if url not in seen:
                seen.add(url)
                merged.append(url)
    return merged
