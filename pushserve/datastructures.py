from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, cast
from urllib.parse import parse_qsl, urlencode

from multidict import CIMultiDict, MultiMapping


class Header(CIMultiDict):
    """
    Case-insensitive multi dict of header names to values, used for request and
    response headers alike.

    Accepts a mapping or an iterable of `(name, value)` pairs, in `str` or
    latin-1 encoded `bytes` as ASGI carries them.
    """

    def __init__(
        self,
        value: MultiMapping
        | Mapping[str, Any]
        | Iterable[tuple[bytes | str, bytes | str]]
        | None = None,
    ) -> None:
        super().__init__(self.parse_headers(value or ()))

    @staticmethod
    def parse_headers(value: Any) -> list[tuple[str, str]]:
        items = value.items() if isinstance(value, Mapping) else value
        return [(to_str(name), to_str(header_value)) for name, header_value in items]

    @classmethod
    def from_scope(cls, scope: Any) -> Header:
        return cls(scope.get("headers", ()))

    def getlist(self, key: str) -> list[str]:
        return cast(list[str], self.getall(key, []))

    def encoded_multi_items(self) -> Iterator[tuple[bytes, bytes]]:
        """
        Every header, repeated ones included, as lower-cased latin-1 bytes for ASGI.
        """
        for name, header_value in self.items():
            yield name.lower().encode("latin-1"), header_value.encode("latin-1")

    def get_encoded_multi_items(self) -> list[tuple[bytes, bytes]]:
        return list(self.encoded_multi_items())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self.items())!r})"


def to_str(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    assert isinstance(value, str), f"Header names and values must be str or bytes, not {value!r}."
    return value


class QueryParams(Mapping[str, str]):
    """
    An immutable mapping of query parameters.

    Keys are unique: when a key is repeated the last value wins. Blank values
    are kept, so `?push` and `?push=` both make `push` present.
    """

    __slots__ = ("_data",)

    def __init__(self, value: str | bytes | Mapping[str, str] | None = None) -> None:
        if isinstance(value, bytes):
            value = value.decode("latin-1")
        if isinstance(value, str):
            self._data: dict[str, str] = dict(parse_qsl(value, keep_blank_values=True))
        else:
            self._data = dict(value or {})

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, QueryParams):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __str__(self) -> str:
        return urlencode(sorted(self._data.items()))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self)!r})"


@dataclass(frozen=True)
class RequestTarget:
    """
    The structured form of a request line: the path and its query parameters.
    """

    path: str
    query: QueryParams = field(default_factory=QueryParams)

    def has_query(self, key: str) -> bool:
        return key in self.query


def parse_request(raw_path: str | bytes, raw_query: str | bytes = b"") -> RequestTarget:
    """
    Parses the path and query string of a request into a `RequestTarget`.

    The path is the decoded ASGI path and is kept as is: a `?` in it is an
    escaped `%3F`, part of the path. The query comes from `raw_query` only.

    Args:
        raw_path (str | bytes): The request path, as given by the transport.
        raw_query (str | bytes): The raw query string, without the leading `?`.

    Returns:
        RequestTarget: The immutable parsed target.
    """
    if isinstance(raw_path, bytes):
        raw_path = raw_path.decode("latin-1")
    if isinstance(raw_query, bytes):
        raw_query = raw_query.decode("latin-1")

    return RequestTarget(path=raw_path or "/", query=QueryParams(raw_query))
