"""Account classification for imported bank rows.

Suggestions come from, in order: the organization's import rules, an
optional external classifier, and a built-in keyword heuristic over common
Japanese chart-of-account codes. The classifier only reads; creating rules
from confirmed mappings is the import service's job.
"""

import logging
import re
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Sequence

from tallybook.domain.entities import Account, AccountSuggestion, ImportRule, TransactionType

logger = logging.getLogger(__name__)


class ExternalClassifier(ABC):
    """Collaborator asked for a suggestion when no rule matches."""

    @abstractmethod
    def classify(
        self,
        description: str,
        amount: Decimal,
        type: TransactionType,
        accounts: Sequence[Account],
    ) -> Optional[AccountSuggestion]:
        """Suggest a debit/credit account pair, or None."""
        pass


def rule_matches(rule: ImportRule, description: str) -> bool:
    """Check whether a rule's pattern matches a description.

    Patterns written as "/.../" are case-insensitive regular expressions;
    anything else (including an invalid regex) is a case-insensitive
    substring.
    """
    pattern = rule.description_pattern
    if len(pattern) > 1 and pattern.startswith("/") and pattern.endswith("/"):
        try:
            return re.search(pattern[1:-1], description, re.IGNORECASE) is not None
        except re.error:
            pass
    return pattern.lower() in description.lower()


def find_matching_rule(description: str, rules: Sequence[ImportRule]) -> Optional[ImportRule]:
    """Return the best active rule for a description.

    Highest confidence wins; ties go to the rule used most often.
    """
    matching = [rule for rule in rules if rule.is_active and rule_matches(rule, description)]
    if not matching:
        return None
    return max(matching, key=lambda rule: (rule.confidence, rule.usage_count))


def _find_account(accounts: Sequence[Account], code: str, name_fragment: str) -> Optional[Account]:
    for account in accounts:
        if account.code == code or name_fragment in account.name:
            return account
    return None


# (keywords, expense account code, expense account name fragment, reason)
_EXPENSE_PATTERNS = (
    (("電気", "ガス", "水道"), "7130", "水道光熱費", "Utility expense pattern"),
    (("電話", "携帯", "インターネット"), "7140", "通信費", "Communication expense pattern"),
    (("jr", "電車", "交通"), "7110", "旅費交通費", "Travel expense pattern"),
)


class KeywordClassifier:
    """Keyword heuristic over a Japanese chart of accounts.

    Needs an ordinary deposit account (code 1110 or 普通預金); returns None
    when the accounts a pattern needs are missing.
    """

    def classify(
        self,
        description: str,
        type: TransactionType,
        accounts: Sequence[Account],
    ) -> Optional[AccountSuggestion]:
        bank = _find_account(accounts, "1110", "普通預金")
        if bank is None:
            return None
        text = description.lower()
        revenue = _find_account(accounts, "4110", "売上")

        if type == TransactionType.INCOME or "入金" in text or "振込" in text:
            if revenue is not None:
                return AccountSuggestion(bank.id, revenue.id, 0.6, "Income pattern detected")

        if type == TransactionType.EXPENSE:
            for keywords, code, name, reason in _EXPENSE_PATTERNS:
                if any(keyword in text for keyword in keywords):
                    expense = _find_account(accounts, code, name)
                    if expense is not None:
                        return AccountSuggestion(expense.id, bank.id, 0.7, reason)

        if type == TransactionType.INCOME and revenue is not None:
            return AccountSuggestion(bank.id, revenue.id, 0.3, "Default income mapping")
        if type == TransactionType.EXPENSE:
            other = _find_account(accounts, "7190", "その他経費")
            if other is not None:
                return AccountSuggestion(other.id, bank.id, 0.3, "Default expense mapping")
        return None


class AccountClassifier:
    """Suggests a debit/credit account pair for one bank row."""

    def __init__(
        self,
        external: Optional[ExternalClassifier] = None,
        use_ai: bool = False,
        keyword_fallback: bool = True,
    ):
        """Initialize account classifier.

        Args:
            external: Classifier consulted when no rule matches
            use_ai: Whether the external classifier may be consulted
            keyword_fallback: Whether to fall back to the keyword heuristic
        """
        self.external = external
        self.use_ai = use_ai and external is not None
        self.keywords = KeywordClassifier() if keyword_fallback else None

    def classify_transaction(
        self,
        description: str,
        amount: Decimal,
        type: TransactionType,
        rules: Sequence[ImportRule],
        accounts: Sequence[Account],
    ) -> Optional[AccountSuggestion]:
        """Suggest accounts for a row.

        Args:
            description: Row description
            amount: Absolute row amount
            type: Income or expense
            rules: The organization's import rules
            accounts: The organization's accounts

        Returns:
            AccountSuggestion, or None when the row must be mapped by hand
        """
        rule = find_matching_rule(description, rules)
        if rule is not None:
            return AccountSuggestion(
                account_id=rule.account_id,
                contra_account_id=rule.contra_account_id,
                confidence=rule.confidence,
                reason="Matched import rule",
                rule_id=rule.id,
            )

        if self.use_ai:
            try:
                suggestion = self.external.classify(description, amount, type, accounts)
            except Exception:
                logger.warning("External classifier failed for %r", description, exc_info=True)
                suggestion = None
            if suggestion is not None:
                return suggestion

        if self.keywords is not None:
            return self.keywords.classify(description, type, accounts)
        return None
