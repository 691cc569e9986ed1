"""
Typed exception hierarchy for the dairy system.

Every error carries a machine-readable ``code`` class attribute and keeps
its context as attributes, so callers catch by type and read structured
data instead of parsing messages.

    DairyError (base)
    |
    +-- RateConfigError
    |   +-- InvalidRateTableError
    |   +-- UnknownRateMethodError
    |
    +-- EntryError
    |   +-- EntryNotFoundError
    |
    +-- FarmerError
        +-- FarmerNotFoundError
        +-- DuplicateFarmerError

Code                 | When Raised
---------------------|----------------------------------------------------
INVALID_RATE_TABLE   | A rate table row is missing a field or non-numeric
UNKNOWN_RATE_METHOD  | A rate method name is not CHART/FAT/TS/TS_NEW
ENTRY_NOT_FOUND      | Collection entry ID doesn't exist
FARMER_NOT_FOUND     | Farmer ID doesn't exist
DUPLICATE_FARMER     | Manual ID already registered at the branch

The pure engines (rate calculation, billing aggregation) never raise any
of these.  A missing rate rule, a malformed measurement or an unknown
method degrade to a zero rate with an explicit ``matched=False`` result;
deciding whether to block the save is the caller's job.
"""


class DairyError(Exception):
    """
    Base exception for all dairy system errors.

    All subclasses must have a `code` class attribute.
    """

    code: str = "DAIRY_ERROR"


# Rate configuration exceptions


class RateConfigError(DairyError):
    """Base exception for rate configuration errors."""

    code: str = "RATE_CONFIG_ERROR"


class InvalidRateTableError(RateConfigError):
    """A row in a rate table cannot be turned into a typed row."""

    code: str = "INVALID_RATE_TABLE"

    def __init__(self, method: str, row_index: int, field: str, value: object = None):
        self.method = method
        self.row_index = row_index
        self.field = field
        self.value = value
        super().__init__(
            f"Invalid {method} rate table: row {row_index} field "
            f"'{field}' has value {value!r}"
        )


class UnknownRateMethodError(RateConfigError):
    """Rate method name is not one of the supported pricing methods."""

    code: str = "UNKNOWN_RATE_METHOD"

    def __init__(self, method: object):
        self.method = method
        super().__init__(f"Unknown rate method: {method!r}")


# Entry exceptions


class EntryError(DairyError):
    """Base exception for collection entry errors."""

    code: str = "ENTRY_ERROR"


class EntryNotFoundError(EntryError):
    """Collection entry with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Entry not found: {entry_id}")


# Farmer exceptions


class FarmerError(DairyError):
    """Base exception for farmer errors."""

    code: str = "FARMER_ERROR"


class FarmerNotFoundError(FarmerError):
    """Farmer with given ID was not found."""

    code: str = "FARMER_NOT_FOUND"

    def __init__(self, farmer_id: str):
        self.farmer_id = farmer_id
        super().__init__(f"Farmer not found: {farmer_id}")


class DuplicateFarmerError(FarmerError):
    """A farmer with the same manual ID is already registered at the branch."""

    code: str = "DUPLICATE_FARMER"

    def __init__(self, branch_id: str, manual_id: str):
        self.branch_id = branch_id
        self.manual_id = manual_id
        super().__init__(
            f"Farmer {manual_id} is already registered at branch {branch_id}"
        )
