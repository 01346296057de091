import pytest

from gallery_search.utils.text_cleaning import clean_text, normalize_query, query_terms


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, ""),
        ("", ""),
        ("Caff&egrave; on the <b>corner</b>", "Caffè on the corner"),
        ("See [the harbour](https://example.com) at dusk", "See the harbour at dusk"),
        ("## A *quiet* street\n- two **red** bikes", "A quiet street two red bikes"),
        ("  lots   of\r\nspace  ", "lots of space"),
    ],
)
def test_clean_text(raw, expected):
    assert clean_text(raw) == expected


def test_snake_case_words_survive():
    assert clean_text("file_name_here") == "file_name_here"


@pytest.mark.parametrize(
    "query, expected",
    [("  sunset   beach ", "sunset beach"), ("\tdogs\n", "dogs"), ("", ""), (None, ""), (5, "")],
)
def test_normalize_query(query, expected):
    assert normalize_query(query) == expected


def test_query_terms_keeps_long_words_in_order():
    assert query_terms("Red car near the OCEAN shore") == ["near", "ocean", "shore"]


def test_query_terms_min_length():
    assert query_terms("a big dog", min_length=3) == ["big", "dog"]
    assert query_terms("") == []
