import pytest

from fakes import FakeProvider, FakeStore, make_hit
from gallery_search.errors import (
    CollaboratorRateLimitError,
    InvalidQueryError,
    StoreUnavailableError,
)
from gallery_search.search import SearchCoordinator, SearchCoordinatorConfig
from gallery_search.search.service import (
    clamp_limit,
    clamp_score_threshold,
    generate_suggestions,
)

CONFIG = SearchCoordinatorConfig()


@pytest.mark.parametrize(
    "value, expected",
    [(None, 10), (0, 1), (-3, 1), (500, 50), (7, 7), ("7", 7), (3.9, 3), ("abc", 10)],
)
def test_clamp_limit(value, expected):
    assert clamp_limit(value, CONFIG) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, 0.7),
        (-1, 0.0),
        (2, 1.0),
        (0, 0.0),
        ("0.5", 0.5),
        (float("nan"), 0.7),
        ("high", 0.7),
    ],
)
def test_clamp_score_threshold(value, expected):
    assert clamp_score_threshold(value, CONFIG) == expected


def test_suggestions_put_categories_before_query_words():
    suggestions = generate_suggestions("Blue car", ("city", "ocean"), 5)

    # "blue" qualifies (4 chars), "car" does not
    assert suggestions == ["city", "ocean", "blue"]


def test_suggestions_are_deduplicated_and_capped():
    suggestions = generate_suggestions("city city sunset beach", ("city",), 3)

    assert suggestions == ["city", "sunset", "beach"]


async def test_results_below_threshold_are_dropped():
    store = FakeStore(
        hits=[
            make_hit("1", 0.92, "sunset.jpg", "sunset over the mountains"),
            make_hit("2", 0.5, "office.jpg", "an office desk"),
        ]
    )
    coordinator = SearchCoordinator(FakeProvider(), store)

    response = await coordinator.search("sunset over mountains")

    assert [r.id for r in response.results] == ["1"]
    assert response.results[0].filename == "sunset.jpg"
    assert response.total_found == 1
    assert response.suggestions == []
    assert response.score_threshold == 0.7
    assert response.limit == 10


async def test_results_are_sorted_best_first_and_truncated():
    store = FakeStore(
        hits=[make_hit("a", 0.75), make_hit("b", 0.95), make_hit("c", 0.8)]
    )
    coordinator = SearchCoordinator(FakeProvider(), store)

    response = await coordinator.search("anything", limit=2, score_threshold=0.7)

    assert [r.score for r in response.results] == [0.95, 0.8]


async def test_no_match_returns_suggestions():
    coordinator = SearchCoordinator(FakeProvider(), FakeStore(hits=[make_hit("1", 0.2)]))

    response = await coordinator.search("zzqqxx")

    assert response.results == []
    assert response.total_found == 0
    assert "nature" in response.suggestions
    assert len(response.suggestions) <= 5
    assert len(set(response.suggestions)) == len(response.suggestions)


async def test_custom_suggestion_terms_include_query_words():
    config = SearchCoordinatorConfig(suggestion_terms=("city",), max_suggestions=5)
    coordinator = SearchCoordinator(FakeProvider(), FakeStore(), config)

    response = await coordinator.search("Sunset city beach")

    assert response.suggestions == ["city", "sunset", "beach"]


async def test_clamped_parameters_reach_the_store():
    store = FakeStore()
    coordinator = SearchCoordinator(FakeProvider(), store)

    response = await coordinator.search("dogs", limit=500, score_threshold=2)

    assert store.query_calls[0][1:] == (50, 1.0)
    assert response.limit == 50
    assert response.score_threshold == 1.0


async def test_query_is_normalized_and_embedded_once():
    provider = FakeProvider()
    coordinator = SearchCoordinator(provider, FakeStore())

    response = await coordinator.search("  sunset   beach ")

    assert response.query == "sunset beach"
    assert provider.embed_calls == ["sunset beach"]


@pytest.mark.parametrize("query", ["", "   ", None, 42, ["sunset"]])
async def test_invalid_query_is_rejected(query):
    provider = FakeProvider()
    coordinator = SearchCoordinator(provider, FakeStore())

    with pytest.raises(InvalidQueryError) as info:
        await coordinator.search(query)

    assert info.value.code == "INVALID_QUERY"
    assert provider.embed_calls == []


async def test_provider_errors_propagate():
    provider = FakeProvider(embed_errors={"sunset": CollaboratorRateLimitError("slow down")})
    store = FakeStore()

    with pytest.raises(CollaboratorRateLimitError):
        await SearchCoordinator(provider, store).search("sunset")

    assert store.query_calls == []


async def test_store_errors_propagate():
    store = FakeStore()
    store.query_error = StoreUnavailableError("Milvus is down")

    with pytest.raises(StoreUnavailableError):
        await SearchCoordinator(FakeProvider(), store).search("sunset")
