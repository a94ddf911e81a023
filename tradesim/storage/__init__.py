"""Result storage."""

from tradesim.storage.results import ResultSink, SQLiteResultStore

__all__ = ["ResultSink", "SQLiteResultStore"]
