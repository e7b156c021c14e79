"""Domain layer for tallybook application.

Services live in their own modules (`tallybook.domain.csv_import`,
`tallybook.domain.ledger`, ...) and are imported from there; this package
only re-exports the shared entity and error types so that the database layer
can depend on them without pulling the services in.
"""

from tallybook.domain import entities, errors
from tallybook.domain.entities import BALANCE_EPSILON

__all__ = ["entities", "errors", "BALANCE_EPSILON"]
