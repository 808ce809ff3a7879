from __future__ import annotations


class VennForceError(Exception):
    """Base class for errors raised by the layout engine."""


class DimensionMismatch(VennForceError, ValueError):
    """Region weight count does not match ``2 ** set_count``."""

    def __init__(self, set_count: int, got: int) -> None:
        self.set_count = set_count
        self.expected = 2**set_count
        self.got = got
        super().__init__(
            f"{set_count} sets need {self.expected} region weights, got {got}"
        )


class UnknownRegion(VennForceError, KeyError):
    """A region description does not resolve under the diagram's set names."""

    def __init__(self, region: object, reason: str) -> None:
        self.region = region
        self.reason = reason
        super().__init__(region)

    def __str__(self) -> str:
        return f"unknown region {self.region!r}: {self.reason}"
