from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Sequence

if TYPE_CHECKING:
    from pharmacy_import.pipeline.stores import CategoryRef


class ImportAborted(Exception):
    """Base for batch-scoped failures: the whole import run stops."""


class ParseFailure(ImportAborted):
    """Input could not be decomposed into rows at all. Nothing is imported."""


class InvalidStateError(ImportAborted):
    """An `ImportRun` operation was called in a state that does not allow it."""


class DependencyFailure(ImportAborted):
    """
    The Category Store failed while creating approved categories.

    `created` lists what was already committed so a retry neither re-creates nor
    re-prompts for those names; `pending` is what still needs creating.
    """

    def __init__(
        self,
        message: str,
        *,
        created: Mapping[str, "CategoryRef"],
        pending: Sequence[str],
        total_rows: int,
        valid_row_count: int,
        error_count: int,
    ) -> None:
        super().__init__(message)
        self.created = dict(created)
        self.pending = list(pending)
        self.total_rows = total_rows
        self.valid_row_count = valid_row_count
        self.error_count = error_count
