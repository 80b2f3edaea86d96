class AdSheetsError(Exception):
    pass


class ScopeError(AdSheetsError, ValueError):
    """Scope key or request body is incomplete. Raised before any remote call."""


class RecordNotFoundError(AdSheetsError):
    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} '{record_id}' not found")


class RowIndexError(AdSheetsError):
    """A stored record has no usable sheet row, so it cannot be projected."""

    def __init__(self, kind: str, record_id: str, row_index: object) -> None:
        self.kind = kind
        self.record_id = record_id
        self.row_index = row_index
        super().__init__(
            f"{kind} '{record_id}' has invalid rowIndex {row_index!r}"
        )


class DuplicateSheetError(AdSheetsError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"A sheet named '{name}' already exists")


class PlatformDispatchError(AdSheetsError):
    def __init__(self, resource: str, message: str) -> None:
        self.resource = resource
        super().__init__(f"Google Ads {resource} batch failed: {message}")
