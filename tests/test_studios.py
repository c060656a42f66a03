import json

from job_aggregator.models import Job
from job_aggregator.studios import (
    DEFAULT_STUDIOS,
    Studio,
    StudioDirectory,
    identify_studio_type,
    is_abbreviation,
    load_studios,
)


def _job(company: str, **fields) -> Job:
    return Job(id="p-1", title=fields.pop("title", "Gameplay Programmer"), company=company, source="p", **fields)


def test_exact_and_containment_matches() -> None:
    directory = StudioDirectory()

    assert directory.find_by_company_name("Ubisoft").id == "ubisoft"
    assert directory.find_by_company_name("Ubisoft Montreal").id == "ubisoft"
    assert directory.find_by_company_name("Blizzard").id == "blizzard"


def test_containment_ignores_word_boundaries() -> None:
    directory = StudioDirectory()

    assert directory.find_by_company_name("UbisoftMontreal").id == "ubisoft"
    assert directory.find_by_company_name("Blizz").id == "blizzard"
    assert directory.find_by_company_name("RobloxCorp").id == "roblox"
    assert directory.find_by_company_name("Ubi") is None


def test_abbreviation_matches_multi_word_studio() -> None:
    directory = StudioDirectory()

    assert directory.find_by_company_name("EA").id == "electronic-arts"
    assert directory.find_by_company_name("CDPR") is None
    assert directory.find_by_company_name("CPR").id == "cd-projekt-red"


def test_generic_words_and_unrelated_names_do_not_match() -> None:
    directory = StudioDirectory()

    assert directory.find_by_company_name("Games") is None
    assert directory.find_by_company_name("Patriot Software") is None
    assert directory.find_by_company_name("") is None


def test_is_abbreviation_rules() -> None:
    assert is_abbreviation("EA", "Electronic Arts")
    assert is_abbreviation("Ele", "Electronic Arts")
    assert not is_abbreviation("EA", "Valve")
    assert not is_abbreviation("Electronic", "Electronic Arts")
    assert not is_abbreviation("E", "Electronic Arts")


def test_enrich_uses_studio_data_when_matched() -> None:
    job = StudioDirectory().enrich(_job("Supercell Oy"))

    assert job.studio_id == "supercell"
    assert job.studio_slug == "supercell"
    assert job.studio_type == "Mobile"
    assert job.game_genres == ("Strategy",)
    assert job.platforms == ("Mobile",)
    assert 0.0 < job.gaming_relevance <= 1.0


def test_enrich_falls_back_to_keyword_scanning() -> None:
    job = StudioDirectory().enrich(
        _job("Tiny Indie Co", title="RPG Designer", description="Ship a Roguelike on PC and Switch")
    )

    assert job.studio_id is None
    assert job.studio_type == "Indie"
    assert job.game_genres == ("RPG", "Roguelike")
    assert job.platforms == ("PC", "Switch")


def test_enrich_keeps_provider_relevance() -> None:
    job = StudioDirectory().enrich(_job("Nobody", gaming_relevance=0.9))

    assert job.gaming_relevance == 0.9


def test_identify_studio_type_from_company_keywords() -> None:
    assert identify_studio_type("Sony Interactive Entertainment") == "AAA"
    assert identify_studio_type("King") == "Mobile"
    assert identify_studio_type("Acme Corp") == "Unknown"


def test_load_studios_from_file_and_missing_file(tmp_path) -> None:
    path = tmp_path / "studios.json"
    path.write_text(json.dumps([{"id": "x", "name": "Example Studio", "genres": ["Puzzle"]}]), encoding="utf-8")

    loaded = load_studios(path)

    assert loaded == [Studio(id="x", name="Example Studio", slug="example-studio", genres=("Puzzle",))]
    assert load_studios(tmp_path / "missing.json") == list(DEFAULT_STUDIOS)
    assert load_studios(None) == list(DEFAULT_STUDIOS)
