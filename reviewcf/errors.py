"""Exceptions shared across the rating store and the batch pipeline."""

from __future__ import annotations


class StoreUnavailable(RuntimeError):
    """The backing rating data could not be read.

    The prediction core never recovers from this; it propagates out of a batch run
    and callers decide on retries.
    """
