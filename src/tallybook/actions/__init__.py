"""Public operations returning ActionResult envelopes."""

from tallybook.actions.csv_import import ImportActions
from tallybook.actions.journal_entries import JournalEntryActions
from tallybook.actions.ledgers import LedgerActions
from tallybook.actions.result import ActionError, ActionResult, action_boundary
from tallybook.actions.setup import SetupActions

__all__ = [
    "ActionError",
    "ActionResult",
    "action_boundary",
    "ImportActions",
    "JournalEntryActions",
    "LedgerActions",
    "SetupActions",
]
