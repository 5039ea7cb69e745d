"""Tests for the creator/cast knowledge base and market thesis."""

import json

import pytest

from chartcast.knowledge.base import KnowledgeBase, default_knowledge_base, popularity_star_power
from chartcast.knowledge.thesis import buzz_signal, generate_market_thesis, star_power_signal


@pytest.fixture
def kb():
    return default_knowledge_base()


class TestCreatorLookup:
    def test_title_phrase_match(self, kb):
        creator, record = kb.creator_track_record("Fool Me Once")
        assert creator == "Harlan Coben"
        assert record.hit_rate == 0.95

    def test_longest_phrase_wins(self, kb):
        creator, _ = kb.creator_track_record("Monsters: The Lyle and Erik Menendez Story")
        assert creator == "Ryan Murphy"
        creator, _ = kb.creator_track_record("Stranger Things 5")
        assert creator == "The Duffer Brothers"

    def test_short_phrases_need_word_boundaries(self, kb):
        found = kb.creator_track_record("Young Sheldon")
        assert found is None or found[0] != "Greg Berlanti"
        creator, _ = kb.creator_track_record("You: Season 5")
        assert creator == "Greg Berlanti"

    def test_unknown_title(self, kb):
        assert kb.creator_track_record("Zzyzx Quarry") is None
        assert kb.creator_track_record("") is None

    def test_momentum_boost(self, kb):
        assert kb.creator_momentum_boost("Fool Me Once") == (
            43,
            "Harlan Coben",
            kb.creators["Harlan Coben"].reason,
        )
        assert kb.creator_momentum_boost("Zzyzx Quarry") == (0, None, None)

    def test_tables_are_read_only(self, kb):
        with pytest.raises(TypeError):
            kb.creators["Someone"] = None


class TestStarPower:
    def test_tier_boosts_stack(self, kb):
        assert kb.star_power_score(["Jenna Ortega"]) == 25.0
        assert kb.star_power_score(["Jenna Ortega", "Pablo Schreiber"]) == 40.0

    def test_capped_at_100(self, kb):
        assert kb.star_power_score(["Zendaya", "Margot Robbie"], popularity_score=90) == 100.0

    def test_accent_insensitive_cast_match(self, kb):
        assert kb.notable_cast(["Timothee Chalamet"])[0].name == "Timothée Chalamet"

    def test_popularity_star_power(self):
        assert popularity_star_power([]) == 0.0
        assert popularity_star_power([50.0]) == 50.0
        assert popularity_star_power([80.0, 40.0]) == 62.0
        assert popularity_star_power([500.0] * 12) == 100.0


def test_genre_and_source_lookups(kb):
    assert kb.genre_appeal_for(["Psychological Thriller"]).appeal == "HIGH"
    assert kb.genre_appeal_for(["Docuseries", "Documentary"]).appeal == "LOW"
    assert kb.genre_appeal_for(["Western"]) is None
    assert kb.source_material_for("Bridgerton") == "Julia Quinn novel series"
    assert kb.source_material_for("Zzyzx Quarry") is None


def test_custom_data_dir(tmp_path):
    (tmp_path / "creators.json").write_text(
        json.dumps(
            {
                "creators": {"Jane Doe": {"hit_rate": 0.6, "show_count": 2, "content_type": "MOVIE"}},
                "title_creators": {"Quiet Town": "Jane Doe", "Other": "Nobody"},
            }
        )
    )
    (tmp_path / "cast.json").write_text(json.dumps({"tier_boosts": {"A_LIST": 30}, "cast": {}}))
    (tmp_path / "appeal.json").write_text(json.dumps({}))

    kb = KnowledgeBase(str(tmp_path))
    creator, record = kb.creator_track_record("Quiet Town")
    assert creator == "Jane Doe"
    assert record.content_type == "MOVIE"
    assert kb.creator_track_record("Other") is None


class TestThesis:
    def test_strong_thesis(self, kb):
        thesis = generate_market_thesis(
            kb,
            "Bridgerton",
            cast=["Jenna Ortega", "Zendaya"],
            genres=["Romance"],
            search_score=90,
        )
        types = [s.type for s in thesis.signals]
        assert types == ["STAR_POWER", "SOURCE_MATERIAL", "GENRE", "BUZZ", "TRACK_RECORD"]
        assert thesis.confidence == "HIGH"
        assert thesis.star_power_score == 50.0
        assert thesis.summary.endswith(".")
        assert thesis.to_dict()["notable_cast"][0]["name"] == "Jenna Ortega"

    def test_empty_thesis(self, kb):
        thesis = generate_market_thesis(kb, "Zzyzx Quarry")
        assert thesis.signals == []
        assert thesis.confidence == "LOW"
        assert thesis.summary == "Limited data available to explain market pricing."

    def test_star_power_signal_grades(self, kb):
        assert star_power_signal(kb.notable_cast(["Zendaya", "Margot Robbie"])).description.startswith("A-list")
        assert star_power_signal(kb.notable_cast(["Pablo Schreiber"])).strength == "WEAK"
        assert star_power_signal([]) is None

    def test_buzz_signal(self):
        assert buzz_signal(85).strength == "STRONG"
        assert buzz_signal(None, trailer_views=2_000_000).strength == "MODERATE"
        assert buzz_signal(55).strength == "MODERATE"
        assert buzz_signal(20) is None
