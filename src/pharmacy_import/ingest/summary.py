from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class LoadSummary:
    """Counts for one `load` run, as recorded in the ledger."""
    run_id: UUID | None         # `None` for dry runs
    input_path: str
    status: str
    total: int
    loaded: int
    rejected: int
    skipped: int
    created_categories: tuple[str, ...] = ()

    def render_one_line(self) -> str:
        """How the summary is printed in the terminal."""
        return (
            f"products: total={self.total} loaded={self.loaded} rejected={self.rejected} "
            f"skipped={self.skipped} run_id={self.run_id}"
        )
