"""Studio directory used to enrich postings with game-industry context."""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, TypeAdapter

from job_aggregator.keywords import contains_phrase, normalize_text, scan_keywords
from job_aggregator.models import Job

logger = logging.getLogger(__name__)

GENRES = (
    "RPG", "FPS", "Strategy", "Puzzle", "Action", "Racing", "Sports", "Horror",
    "Simulation", "Shooter", "Platformer", "MMORPG", "MOBA", "Battle Royale", "Roguelike", "Sandbox",
)
PLATFORMS = ("PC", "Console", "Mobile", "VR", "AR", "Web", "Switch", "PlayStation", "Xbox", "Steam")

_STUDIO_TYPE_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("AAA", ("epic games", "blizzard", "valve", "riot games", "sony", "microsoft", "nintendo", "activision")),
    ("Mobile", ("king", "supercell", "rovio", "zynga")),
    ("Indie", ("indie", "independent")),
)
_GENERIC_NAME_WORDS = frozenset(
    {"games", "game", "studio", "studios", "entertainment", "interactive", "technologies", "digital", "labs"}
)
_GAMING_TERMS = (
    "game", "games", "gaming", "gameplay", "unity", "unreal", "unreal engine", "godot",
    "level design", "game designer", "esports", "studio", "console", "multiplayer",
)


class Studio(BaseModel):
    id: str
    name: str
    slug: str = ""
    type: str = "Unknown"
    genres: tuple[str, ...] = ()
    platforms: tuple[str, ...] = ()
    aliases: tuple[str, ...] = ()

    def model_post_init(self, context: Any) -> None:
        if not self.slug:
            self.slug = re.sub(r"[^a-z0-9]+", "-", self.name.casefold()).strip("-")


DEFAULT_STUDIOS: tuple[Studio, ...] = (
    Studio(id="riot-games", name="Riot Games", type="AAA", genres=("MOBA", "FPS"), platforms=("PC",)),
    Studio(id="epic-games", name="Epic Games", type="AAA", genres=("Battle Royale", "Action"),
           platforms=("PC", "Console", "Mobile")),
    Studio(id="blizzard", name="Blizzard Entertainment", type="AAA", genres=("MMORPG", "Strategy", "FPS"),
           platforms=("PC", "Console")),
    Studio(id="electronic-arts", name="Electronic Arts", type="AAA", genres=("Sports", "Shooter", "Racing"),
           platforms=("PC", "Console", "Mobile")),
    Studio(id="ubisoft", name="Ubisoft", type="AAA", genres=("Action", "RPG"), platforms=("PC", "Console")),
    Studio(id="bungie", name="Bungie", type="AAA", genres=("FPS",), platforms=("PC", "Console")),
    Studio(id="rockstar-games", name="Rockstar Games", type="AAA", genres=("Action",),
           platforms=("PC", "Console")),
    Studio(id="valve", name="Valve", type="AAA", genres=("FPS", "MOBA"), platforms=("PC", "Steam")),
    Studio(id="roblox", name="Roblox", type="Platform", genres=("Sandbox",), platforms=("PC", "Mobile", "Console")),
    Studio(id="unity", name="Unity Technologies", type="Platform", platforms=("PC", "Mobile", "Web")),
    Studio(id="supercell", name="Supercell", type="Mobile", genres=("Strategy",), platforms=("Mobile",)),
    Studio(id="cd-projekt-red", name="CD Projekt Red", type="AAA", genres=("RPG",), platforms=("PC", "Console")),
)

_studio_list = TypeAdapter(list[Studio])


def load_studios(path: Path | None) -> list[Studio]:
    if path is None:
        return list(DEFAULT_STUDIOS)
    try:
        return _studio_list.validate_python(json.loads(path.read_text(encoding="utf-8")))
    except FileNotFoundError:
        logger.warning("Studio file %s not found, using built-in studio list", path)
        return list(DEFAULT_STUDIOS)


def initials(name: str) -> str:
    return "".join(word[0] for word in normalize_text(name).split())


def is_abbreviation(short: str, candidate: str) -> bool:
    """A single word of at most three letters naming a multi-word studio ("EA", "CDP")."""
    word = normalize_text(short)
    words = normalize_text(candidate).split()
    if not word or " " in word or len(word) > 3 or not word.isalpha() or len(words) < 2:
        return False
    return initials(candidate) == word or (len(word) >= 2 and words[0].startswith(word))


def identify_studio_type(company: str) -> str:
    lowered = normalize_text(company)
    for studio_type, names in _STUDIO_TYPE_HINTS:
        if any(contains_phrase(lowered, name) for name in names):
            return studio_type
    return "Unknown"


def gaming_relevance(job: Job) -> float:
    text = f"{job.title} {job.description} {' '.join(job.tags)}"
    hits = len(scan_keywords(text, _GAMING_TERMS))
    if job.studio_id:
        hits += 3
    return min(1.0, round(hits / 5, 2))


class StudioDirectory:
    def __init__(self, studios: Iterable[Studio] = DEFAULT_STUDIOS):
        self._studios = list(studios)
        self._by_name = {}
        for studio in self._studios:
            for name in (studio.name, *studio.aliases):
                self._by_name.setdefault(normalize_text(name), studio)

    def __len__(self) -> int:
        return len(self._studios)

    def find_by_company_name(self, company: str) -> Studio | None:
        normalized = normalize_text(company)
        if not normalized:
            return None

        exact = self._by_name.get(normalized)
        if exact is not None:
            return exact

        generic = normalized in _GENERIC_NAME_WORDS
        # names of three letters or fewer are left to the abbreviation check
        partial = not generic and len(normalized) > 3
        for name, studio in self._by_name.items():
            if name in normalized or (partial and normalized in name):
                return studio

        for name, studio in self._by_name.items():
            if is_abbreviation(normalized, name):
                return studio
        return None

    def enrich(self, job: Job) -> Job:
        text = f"{job.title} {job.description}"
        studio = self.find_by_company_name(job.company)
        if studio is None:
            enriched = job.model_copy(
                update={
                    "studio_type": identify_studio_type(job.company),
                    "game_genres": scan_keywords(text, GENRES),
                    "platforms": scan_keywords(text, PLATFORMS),
                }
            )
        else:
            enriched = job.model_copy(
                update={
                    "studio_id": studio.id,
                    "studio_slug": studio.slug,
                    "studio_type": studio.type,
                    "game_genres": studio.genres or scan_keywords(text, GENRES),
                    "platforms": studio.platforms or scan_keywords(text, PLATFORMS),
                }
            )
        if enriched.gaming_relevance is None:
            enriched = enriched.model_copy(update={"gaming_relevance": gaming_relevance(enriched)})
        return enriched
