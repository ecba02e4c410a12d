"""Offset pagination with opaque page tokens."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import asdict, dataclass
from typing import Callable, Sequence, TypeVar

from .errors import InvalidArgumentError

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000


@dataclass
class PageToken:
    """Position of the next page: offset into the ordered result list and page size."""

    start: int
    size: int

    def encode(self) -> str:
        raw = json.dumps(asdict(self), separators=(",", ":")).encode()
        return base64.urlsafe_b64encode(raw).decode()

    @staticmethod
    def decode(token: str) -> PageToken:
        try:
            data = json.loads(base64.urlsafe_b64decode(token.encode()))
            return PageToken(start=int(data["start"]), size=int(data["size"]))
        except (binascii.Error, ValueError, KeyError, TypeError) as exc:
            raise InvalidArgumentError(f"could not decode page token: {exc}") from exc


def paginate(
    values: Sequence[T],
    page_size: int = 0,
    page_token: str = "",
    default_page_size: int = DEFAULT_PAGE_SIZE,
    max_page_size: int = MAX_PAGE_SIZE,
) -> tuple[list[T], str]:
    """Return one page of ``values`` and the token for the next page ("" on the last page)."""
    if page_size <= 0:
        size = default_page_size
    else:
        size = min(page_size, max_page_size)

    if page_token:
        token = PageToken.decode(page_token)
        if token.start < 0:
            raise InvalidArgumentError("could not decode page token: negative offset")
    else:
        token = PageToken(start=0, size=size)

    start = token.start
    end = start + size
    if end >= len(values):
        return list(values[start:]), ""

    return list(values[start:end]), PageToken(start=end, size=size).encode()


def list_all_paginated(fetch: Callable[[str], tuple[list[T], str]]) -> list[T]:
    """Drain a paginated listing.

    ``fetch`` receives the page token ("" for the first page) and returns the page and the
    next page token. Errors of ``fetch`` propagate unchanged.
    """
    results: list[T] = []
    page_token = ""
    while True:
        page, page_token = fetch(page_token)
        results.extend(page)
        if not page_token:
            break
    return results
