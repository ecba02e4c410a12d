"""Tests for page tokens and pagination helpers."""

import pytest

from controlwatch.errors import InvalidArgumentError
from controlwatch.pagination import PageToken, list_all_paginated, paginate


def test_default_page_size():
    page, token = paginate(list(range(60)))
    assert page == list(range(50))
    assert PageToken.decode(token) == PageToken(start=50, size=50)


def test_page_size_is_capped():
    page, token = paginate(list(range(20)), page_size=15, max_page_size=10)
    assert len(page) == 10
    assert token


def test_last_page_has_no_token():
    values = list(range(5))
    page, token = paginate(values, page_size=3)
    page2, token2 = paginate(values, page_size=3, page_token=token)

    assert page == [0, 1, 2]
    assert page2 == [3, 4]
    assert token2 == ""


def test_exact_fit_has_no_token():
    assert paginate([1, 2], page_size=2) == ([1, 2], "")


def test_offset_past_end():
    token = PageToken(start=10, size=5).encode()
    assert paginate([1, 2, 3], page_size=5, page_token=token) == ([], "")


@pytest.mark.parametrize("token", ["%%%", "bm90IGpzb24=", PageToken(start=-1, size=5).encode()])
def test_invalid_token(token):
    with pytest.raises(InvalidArgumentError, match="could not decode page token"):
        paginate([1, 2, 3], page_token=token)


def test_list_all_paginated():
    pages = {"": ([1, 2], "p2"), "p2": ([3], "p3"), "p3": ([], "")}
    requested = []

    def fetch(token):
        requested.append(token)
        return pages[token]

    assert list_all_paginated(fetch) == [1, 2, 3]
    assert requested == ["", "p2", "p3"]
