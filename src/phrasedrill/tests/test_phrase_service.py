"""Tests for the phrase service."""
import random

import pytest
from faker import Faker

from phrasedrill.config import VocabularySettings
from phrasedrill.models.models import Phrase, Similarity
from phrasedrill.services.phrase_service import PhraseService

fake = Faker()


def test_insert_and_find_phrase(phrase_service):
    phrase = phrase_service.insert_phrase("casa", "pt", relative_frequency=0.7, category="home")
    assert phrase.id is not None
    assert phrase_service.find_existing_phrase("casa", "pt") == phrase.id
    assert phrase_service.find_existing_phrase("casa", "en") is None
    assert phrase_service.get_phrase(phrase.id).relative_frequency == 0.7


def test_insert_similarity_is_bidirectional_and_ignores_duplicates(phrase_service, db):
    first = phrase_service.insert_phrase("casa", "pt")
    second = phrase_service.insert_phrase("house", "en")
    phrase_service.insert_similarity(first.id, second.id, 1.0)
    phrase_service.insert_similarity(first.id, second.id, 0.5)
    assert db.query(Similarity).count() == 2


def test_insert_similarity_rejects_out_of_range(phrase_service):
    first = phrase_service.insert_phrase("casa", "pt")
    second = phrase_service.insert_phrase("house", "en")
    with pytest.raises(ValueError):
        phrase_service.insert_similarity(first.id, second.id, 1.1)


def test_translations_are_ranked_and_filtered(phrase_service, seeded):
    translations = phrase_service.get_translations(seeded["thank you"])
    assert [t.text for t in translations] == ["obrigado", "obrigada"]
    assert [t.similarity for t in translations] == [1.0, 0.9]

    # Below the acceptable similarity
    assert [t.text for t in phrase_service.get_translations(seeded["dog"])] == ["cão"]
    assert [t.text for t in phrase_service.get_translations(seeded["dog"], min_similarity=0)] == [
        "cão", "cachorro",
    ]
    # Same-language neighbours are not translations
    assert [t.text for t in phrase_service.get_translations(seeded["big"])] == ["grande"]


def test_translation_limit_is_capped(db, seeded):
    service = PhraseService(db, VocabularySettings(max_limit=1))
    assert len(service.get_translations(seeded["thank you"], limit=50)) == 1


def test_similar_returns_same_language(phrase_service, seeded):
    similar = phrase_service.get_similar(seeded["big"])
    assert [s.text for s in similar] == ["large"]


def test_get_pair(phrase_service, seeded):
    pair = phrase_service.get_pair(seeded["casa"])
    assert pair.source.text == "casa"
    assert pair.expected.text == "house"
    assert pair.direction.label == "pt-to-en"

    assert phrase_service.get_pair(seeded["large"]) is None
    assert phrase_service.get_pair(9999) is None


def test_random_pair_always_has_translations(phrase_service, seeded):
    for _ in range(30):
        pair = phrase_service.get_random_pair(["en", "pt"])
        assert pair is not None
        assert pair.target_options
        assert all(o.language != pair.source.language for o in pair.target_options)
        assert pair.source.text not in ("large", "cachorro")


def test_random_pair_respects_languages(phrase_service, seeded):
    for _ in range(10):
        assert phrase_service.get_random_pair(["pt"]).source.language == "pt"


def test_random_pair_falls_back_to_other_language(db, vocabulary_settings):
    service = PhraseService(db, vocabulary_settings, rng=random.Random(3))
    first = service.insert_phrase("casa", "pt")
    second = service.insert_phrase("house", "en")
    service.insert_similarity(first.id, second.id, 1.0, bidirectional=False)

    for _ in range(10):
        assert service.get_random_pair(["en", "pt"]).source.text == "casa"


def test_random_pair_on_empty_store(phrase_service):
    assert phrase_service.get_random_pair(["en", "pt"]) is None
    assert phrase_service.get_random_pair([]) is None


def test_stats(phrase_service, seeded):
    stats = phrase_service.get_stats()
    assert stats["totalPhrases"] == 11
    assert stats["totalSimilarities"] == 14
    assert stats["languageBreakdown"] == {"en": 5, "pt": 6}
    assert 0 < stats["averageSimilarity"] <= 1


def test_stats_on_empty_store(phrase_service):
    assert phrase_service.get_stats() == {
        "totalPhrases": 0,
        "totalSimilarities": 0,
        "languageBreakdown": {},
        "averageSimilarity": 0.0,
    }


def test_validate_answer(phrase_service, seeded):
    result = phrase_service.validate_answer(seeded["thank you"], "Obrigada")
    assert result["isCorrect"]
    assert result["matchedPhrase"]["phrase"] == "obrigada"
    assert result["normalizedUserInput"] == "obrigada"
    assert len(result["correctAnswers"]) == 2

    wrong = phrase_service.validate_answer(seeded["thank you"], "obrigade")
    assert not wrong["isCorrect"]
    assert wrong["matchedPhrase"] is None


def test_import_pairs(phrase_service):
    result = phrase_service.import_pairs([
        {"phrase1": " house ", "language1": "en", "phrase2": "casa", "language2": "pt", "similarity": 1.0},
        {"phrase1": "home", "language1": "en", "phrase2": "casa", "language2": "pt", "similarity": 0.8,
         "category": "home"},
    ])
    assert (result.imported, result.skipped, result.errors) == (2, 0, 0)

    casa = phrase_service.find_existing_phrase("casa", "pt")
    assert phrase_service.find_existing_phrase("house", "en") is not None
    assert [t.text for t in phrase_service.get_translations(casa)] == ["house", "home"]
    assert phrase_service.get_stats()["totalPhrases"] == 3


@pytest.mark.parametrize(
    "pair",
    [
        {"phrase1": "", "language1": "en", "phrase2": "casa", "language2": "pt", "similarity": 1.0},
        {"phrase1": "   ", "language1": "en", "phrase2": "casa", "language2": "pt", "similarity": 1.0},
        {"language1": "en", "phrase2": "casa", "language2": "pt", "similarity": 1.0},
        {"phrase1": "casa", "language1": "pt", "phrase2": "casa ", "language2": "pt", "similarity": 1.0},
        {"phrase1": "house", "language1": "en", "phrase2": "casa", "language2": "pt", "similarity": 1.5},
        {"phrase1": "house", "language1": "en", "phrase2": "casa", "language2": "pt", "similarity": -0.1},
        {"phrase1": "house", "language1": "en", "phrase2": "casa", "language2": "pt", "similarity": "high"},
        {"phrase1": "house", "language1": "xx", "phrase2": "casa", "language2": "pt", "similarity": 1.0},
    ],
)
def test_import_skips_invalid_pairs(phrase_service, pair):
    result = phrase_service.import_pairs([pair])
    assert (result.imported, result.skipped, result.errors) == (0, 1, 0)
    assert phrase_service.get_stats()["totalPhrases"] == 0


def test_import_keeps_going_after_bad_pairs(phrase_service):
    pairs = [
        {"phrase1": fake.unique.word(), "language1": "en", "phrase2": fake.unique.word(),
         "language2": "pt", "similarity": 0.9}
        for _ in range(5)
    ]
    pairs.insert(2, {"phrase1": "x", "language1": "en", "phrase2": "x", "language2": "en", "similarity": 1})
    result = phrase_service.import_pairs(pairs)
    assert result.imported == 5
    assert result.skipped == 1
    assert result.message == "Import completed: 5 imported, 1 skipped, 0 errors"


def test_import_overwrite_clears_existing_data(phrase_service, seeded):
    result = phrase_service.import_pairs(
        [{"phrase1": "cat", "language1": "en", "phrase2": "gato", "language2": "pt", "similarity": 1.0}],
        overwrite=True,
    )
    assert result.imported == 1
    stats = phrase_service.get_stats()
    assert stats["totalPhrases"] == 2
    assert stats["totalSimilarities"] == 2


def test_delete_phrase_removes_edges(phrase_service, seeded, db):
    assert phrase_service.delete_phrase(seeded["casa"])
    assert not phrase_service.delete_phrase(seeded["casa"])
    assert phrase_service.get_pair(seeded["house"]) is None
    assert db.query(Similarity).filter(Similarity.to_phrase_id == seeded["casa"]).count() == 0


def test_delete_similarity_both_directions(phrase_service, seeded):
    assert phrase_service.delete_similarity(seeded["thank you"], seeded["obrigada"]) == 2
    assert phrase_service.delete_similarity(seeded["thank you"], seeded["obrigada"]) == 0
    assert [t.text for t in phrase_service.get_translations(seeded["thank you"])] == ["obrigado"]


def test_list_orphans(phrase_service, seeded):
    assert [p.text for p in phrase_service.list_orphans()] == ["large"]


def test_search(phrase_service, seeded):
    assert [p.text for p in phrase_service.search_phrases("obri")] == ["obrigada", "obrigado"]

    grouped = phrase_service.search_pairs("casa")
    assert list(grouped) == ["basics"]
    pairs = {(p["fromPhrase"]["phrase"], p["toPhrase"]["phrase"]) for p in grouped["basics"]}
    assert pairs == {("house", "casa"), ("casa", "house")}


def test_search_uncategorized(phrase_service):
    first = phrase_service.insert_phrase("gato", "pt")
    second = phrase_service.insert_phrase("cat", "en")
    phrase_service.insert_similarity(first.id, second.id, 1.0)
    assert list(phrase_service.search_pairs("gato")) == ["Uncategorized"]


def test_search_treats_wildcards_literally(phrase_service, seeded):
    assert phrase_service.search_phrases("_") == []
    assert phrase_service.search_phrases("%") == []
    assert phrase_service.search_pairs("_") == {}

    phrase_service.insert_phrase("100% sure", "en")
    phrase_service.insert_phrase("snake_case", "en")
    assert [p.text for p in phrase_service.search_phrases("%")] == ["100% sure"]
    assert [p.text for p in phrase_service.search_phrases("e_c")] == ["snake_case"]


def test_categories_and_frequency(phrase_service, seeded, db):
    phrase_service.insert_phrase("gato", "pt", category="animals")
    assert phrase_service.get_categories() == ["animals", "basics"]

    assert phrase_service.update_frequency(seeded["casa"], 0.25)
    assert db.get(Phrase, seeded["casa"]).relative_frequency == 0.25
    assert not phrase_service.update_frequency(9999, 0.1)


def test_clear_all(phrase_service, seeded):
    phrase_service.clear_all()
    assert phrase_service.get_stats()["totalPhrases"] == 0
