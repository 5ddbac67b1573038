"""File comparison logic for sync operations."""

from collections.abc import Iterable

from .scanner import FileRecord


class SetComparator:
    """Decides which files of a source inventory must be copied to a base.

    A base copy is considered up to date when it has the same size and is
    at least as new as the source file. Equal timestamps with equal sizes
    therefore count as synchronized, even if the contents differ.
    """

    def compare(
        self, source: Iterable[FileRecord], base: Iterable[FileRecord]
    ) -> list[FileRecord]:
        """Compute the transfer plan.

        Args:
            source: Inventory of the side being checked for freshness
            base: Inventory of the side being checked against

        Returns:
            Source records that are missing or outdated on the base side,
            in source order
        """
        base_by_path = {record.path: record for record in base}

        plan: list[FileRecord] = []
        for record in source:
            existing = base_by_path.get(record.path)
            if existing is not None and self.is_up_to_date(record, existing):
                continue
            plan.append(record)

        return plan

    @staticmethod
    def is_up_to_date(source: FileRecord, base: FileRecord) -> bool:
        """Check whether the base copy of a file needs no transfer."""
        return base.size == source.size and base.last_modified >= source.last_modified
