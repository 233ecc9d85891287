from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Sequence

from pharmacy_import.config import ImportSettings
from pharmacy_import.ingest.readers import ParsedCsv, parse_csv_text
from pharmacy_import.matching.categories import CategoryCandidate, Reconciliation, reconcile
from pharmacy_import.parsing.profiles.products import normalize_product_row
from pharmacy_import.parsing.types import ImportRecord, RejectCode, RejectRow, RowIssue
from pharmacy_import.pipeline.errors import DependencyFailure, InvalidStateError, ParseFailure
from pharmacy_import.pipeline.stores import CategoryRef, CategoryStore
from pharmacy_import.validation.rules import ValidationResult, validate

if TYPE_CHECKING:
    from pharmacy_import.pipeline.approval import Approver

logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    parsing = "parsing"
    validating = "validating"
    awaiting_category_approval = "awaiting_category_approval"
    mapping = "mapping"
    complete = "complete"
    cancelled = "cancelled"
    failed = "failed"


_TERMINAL = {ImportState.complete, ImportState.cancelled, ImportState.failed}


@dataclass(frozen=True)
class CategoryDecision:
    """What the approver wants done with one `CategoryCandidate`."""
    action: str                         # "approve_new", "map_to" or "reject"
    target: CategoryRef | None = None   # only for "map_to"

    @classmethod
    def approve_new(cls) -> CategoryDecision:
        return cls("approve_new")

    @classmethod
    def map_to(cls, ref: CategoryRef) -> CategoryDecision:
        return cls("map_to", ref)

    @classmethod
    def reject(cls) -> CategoryDecision:
        return cls("reject")


@dataclass(frozen=True)
class ImportBatchResult:
    """Snapshot of an import run, intermediate or final."""
    state: ImportState
    valid_records: tuple[ImportRecord, ...]
    errors: tuple[str, ...]
    warnings: tuple[str, ...]
    new_categories: tuple[CategoryCandidate, ...]
    total_rows: int
    skipped_rows: int = 0
    created_categories: tuple[CategoryRef, ...] = ()
    rejections: tuple[RejectRow, ...] = ()

    @property
    def valid_row_count(self) -> int:
        return len(self.valid_records)


class ImportRun:
    """
    One import, start to finish. Not reusable; build a fresh one per file.

    `start()` runs parsing, validation and category matching. When unknown
    categories turn up the run stops in `awaiting_category_approval` and waits
    for `submit_decisions()` (or `cancel()`); otherwise it maps straight away.

    If the category store fails mid-way through creating approved categories,
    `DependencyFailure` is raised and the run stays in `mapping`;
    `retry_mapping()` picks up with the categories not yet created.
    """

    def __init__(
        self,
        category_store: CategoryStore,
        *,
        settings: ImportSettings | None = None,
        today: date | None = None,
    ) -> None:
        self.category_store = category_store
        self.settings = settings or ImportSettings()
        self.today = today or date.today()
        self.state = ImportState.parsing

        self._started = False
        self._parsed: ParsedCsv | None = None
        self._validation: ValidationResult | None = None
        self._reconciliation: Reconciliation | None = None
        self._resolved: dict[str, CategoryRef] = {}         # candidate key -> chosen existing category
        self._to_create: list[str] = []                     # approved new names, in candidate order
        self._created: dict[str, CategoryRef] = {}          # approved name -> created category
        self._category_rejects: list[RejectRow] = []
        self._rejected_rows: set[int] = set()               # row_index of records whose category was rejected

    # -- inspection

    @property
    def pending_candidates(self) -> tuple[CategoryCandidate, ...]:
        if self.state is not ImportState.awaiting_category_approval or self._reconciliation is None:
            return ()
        return self._reconciliation.candidates

    def _require(self, *states: ImportState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidStateError(f"import run is {self.state.value}; expected one of: {allowed}")

    def _surviving(self) -> list[ImportRecord]:
        assert self._validation is not None
        return [r for r in self._validation.valid if r.row_index not in self._rejected_rows]

    def _rejections(self) -> tuple[RejectRow, ...]:
        assert self._validation is not None
        merged = [*self._validation.rejections, *self._category_rejects]
        return tuple(sorted(merged, key=lambda r: r.row_number))

    def _result(self, valid: Sequence[ImportRecord], new_categories: Sequence[CategoryCandidate] = ()) -> ImportBatchResult:
        assert self._parsed is not None and self._validation is not None
        rejections = self._rejections()
        return ImportBatchResult(
            state=self.state,
            valid_records=tuple(valid),
            errors=tuple(r.message for r in rejections),
            warnings=self._validation.warnings,
            new_categories=tuple(new_categories),
            total_rows=self._parsed.total_rows,
            skipped_rows=self._parsed.skipped_rows,
            created_categories=tuple(self._created.values()),
            rejections=rejections,
        )

    # -- transitions

    def start(self, raw_text: str) -> ImportBatchResult:
        """
        Parse, normalize, validate and match categories.

        Returns a `complete` result when every category is already known, else an
        `awaiting_category_approval` result listing the candidates. Raises
        `ParseFailure` (run becomes `failed`) when the text holds no rows at all.
        """
        if self._started:
            raise InvalidStateError("import run already started")
        self._started = True

        try:
            self._parsed = parse_csv_text(raw_text)
        except ParseFailure:
            self.state = ImportState.failed
            raise

        self.state = ImportState.validating
        records = [
            normalize_product_row(row, i, settings=self.settings, today=self.today)
            for i, row in enumerate(self._parsed.rows)
        ]
        self._validation = validate(records, today=self.today)
        self._reconciliation = reconcile(
            self._validation.valid,
            self.category_store.list_categories(),
            settings=self.settings,
        )

        if self._reconciliation.candidates:
            self.state = ImportState.awaiting_category_approval
            logger.info("waiting for approval of %d new categories", len(self._reconciliation.candidates))
            return self._result(self._validation.valid, self._reconciliation.candidates)

        self.state = ImportState.mapping
        return self._map()

    def submit_decisions(self, decisions: Mapping[str, CategoryDecision]) -> ImportBatchResult:
        """
        Apply one decision per pending candidate (keyed by `CategoryCandidate.key`),
        then create and map categories.

        Raises `ValueError` when a candidate has no decision or a decision is malformed.
        """
        self._require(ImportState.awaiting_category_approval)
        assert self._reconciliation is not None and self._validation is not None
        candidates = {c.key: c for c in self._reconciliation.candidates}

        missing = [c.normalized_name for k, c in candidates.items() if k not in decisions]
        if missing:
            raise ValueError(f"no decision for categories: {missing}")
        unknown = sorted(set(decisions) - set(candidates))
        if unknown:
            raise ValueError(f"decisions for unknown categories: {unknown}")

        # nothing is recorded until every decision is known to be well formed
        to_create: list[str] = []
        resolved: dict[str, CategoryRef] = {}
        rejected_keys: set[str] = set()
        for key, candidate in candidates.items():
            decision = decisions[key]
            if decision.action == "approve_new":
                to_create.append(candidate.normalized_name)
            elif decision.action == "map_to":
                if decision.target is None:
                    raise ValueError(f"map_to decision for {candidate.normalized_name!r} has no target")
                resolved[key] = decision.target
            elif decision.action == "reject":
                rejected_keys.add(key)
            else:
                raise ValueError(f"unknown decision {decision.action!r} for {candidate.normalized_name!r}")

        self._to_create = to_create
        self._resolved = resolved
        for record in self._validation.valid:
            if self._reconciliation.pending.get(record.row_index) in rejected_keys:
                self._rejected_rows.add(record.row_index)
                self._category_rejects.append(RejectRow(
                    row_number=record.row_number,
                    display_name=record.display_name,
                    issues=(RowIssue(
                        RejectCode.category_rejected,
                        f'category_name: category not approved ("{record.category_name}")',
                    ),),
                    raw_payload=dict(record.explicit),
                ))

        logger.info(
            "decisions: %d approved, %d mapped, %d rejected (%d rows dropped)",
            len(self._to_create), len(self._resolved), len(rejected_keys), len(self._rejected_rows),
        )
        self.state = ImportState.mapping
        return self._map()

    def retry_mapping(self) -> ImportBatchResult:
        """Resume after a `DependencyFailure`; already created categories are not created again."""
        self._require(ImportState.mapping)
        return self._map()

    def cancel(self) -> ImportBatchResult:
        """
        Abandon the run. Categories already created stay in the store.

        Returns a `cancelled` result with no valid records.
        """
        if self.state in _TERMINAL:
            raise InvalidStateError(f"import run is already {self.state.value}")
        logger.info("import cancelled in state %s", self.state.value)
        self.state = ImportState.cancelled

        total = self._parsed.total_rows if self._parsed else 0
        skipped = self._parsed.skipped_rows if self._parsed else 0
        created = tuple(self._created.values())
        self._validation = None
        self._reconciliation = None
        self._resolved.clear()
        self._to_create.clear()
        self._category_rejects.clear()
        self._rejected_rows.clear()
        return ImportBatchResult(
            state=self.state,
            valid_records=(),
            errors=(),
            warnings=(),
            new_categories=(),
            total_rows=total,
            skipped_rows=skipped,
            created_categories=created,
        )

    def _map(self) -> ImportBatchResult:
        assert self._reconciliation is not None

        for name in self._to_create:
            if name in self._created:
                continue
            try:
                made = self.category_store.create_categories([name])
            except Exception as e:
                pending = [n for n in self._to_create if n not in self._created]
                logger.error("category store failed creating %r: %s", name, e)
                raise DependencyFailure(
                    f"could not create category {name!r}: {e}",
                    created=self._created,
                    pending=pending,
                    total_rows=self._parsed.total_rows if self._parsed else 0,
                    valid_row_count=len(self._surviving()),
                    error_count=len(self._rejections()),
                ) from e
            self._created[name] = made[name]
            logger.info("created category %r (%s)", made[name].name, made[name].id)

        by_new_key = {n.casefold(): ref for n, ref in self._created.items()}
        mapped: list[ImportRecord] = []
        for record in self._surviving():
            ref = self._reconciliation.matched.get(record.row_index)
            if ref is None:
                key = self._reconciliation.pending[record.row_index]
                ref = self._resolved.get(key) or by_new_key[key]
            mapped.append(dataclasses.replace(record, category_id=ref.id, category_name=ref.name))

        self.state = ImportState.complete
        logger.info("mapped %d records to categories", len(mapped))
        return self._result(mapped)


def run_import(
    raw_text: str,
    category_store: CategoryStore,
    approver: Approver,
    *,
    settings: ImportSettings | None = None,
    today: date | None = None,
) -> ImportBatchResult:
    """
    Drive an `ImportRun` to the end, asking `approver` at the approval step.

    An approver answering `None` cancels the run.
    """
    run = ImportRun(category_store, settings=settings, today=today)
    result = run.start(raw_text)
    if result.state is not ImportState.awaiting_category_approval:
        return result

    decisions = approver.decide(result.new_categories)
    if decisions is None:
        return run.cancel()
    return run.submit_decisions(decisions)
