"""Account classification through the OpenAI chat completions API.

The model is asked for a debit and credit account code in JSON; the codes are
mapped back to the organization's account IDs. Its answer is advisory and a
failed or unusable response yields no suggestion.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Optional, Sequence

import httpx

from tallybook.domain.classifier import ExternalClassifier
from tallybook.domain.entities import Account, AccountSuggestion, TransactionType

logger = logging.getLogger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_CONFIDENCE = 0.5
MAX_ERROR_DETAIL_CHARS = 500

SYSTEM_PROMPT = "You are an accounting expert specializing in Japanese bookkeeping standards."

PROMPT_TEMPLATE = """Given the following transaction, suggest the most appropriate debit and credit accounts from the list below.

Transaction Description: "{description}"
Amount: {amount}
Type: {type}

Available Accounts:
{accounts}

Please respond in JSON format with the following structure:
{{
  "debitAccount": "account code",
  "creditAccount": "account code",
  "confidence": 0.0-1.0,
  "reason": "brief explanation"
}}

Common patterns for Japanese accounting:
- Income: Debit = Cash/Bank (普通預金), Credit = Revenue (売上高)
- Expense: Debit = Expense account, Credit = Cash/Bank (普通預金)
- Transfer: Between bank/cash accounts"""


def build_messages(
    description: str, amount: Decimal, type: TransactionType, accounts: Sequence[Account]
) -> list[dict[str, str]]:
    """Build the chat messages for one transaction."""
    account_list = "\n".join(f"{acc.code} - {acc.name}" for acc in accounts)
    prompt = PROMPT_TEMPLATE.format(
        description=description,
        amount=amount,
        type=TransactionType(type).value,
        accounts=account_list,
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def parse_suggestion(content: str, accounts: Sequence[Account]) -> Optional[AccountSuggestion]:
    """Map a JSON answer with account codes to an AccountSuggestion.

    Returns:
        AccountSuggestion, or None if the answer is not JSON or names an
        unknown account code
    """
    try:
        result = json.loads(content)
    except json.JSONDecodeError:
        logger.warning("Classifier answer is not JSON: %s", content[:MAX_ERROR_DETAIL_CHARS])
        return None
    if not isinstance(result, dict):
        return None

    by_code = {acc.code: acc for acc in accounts}
    debit = by_code.get(str(result.get("debitAccount", "")))
    credit = by_code.get(str(result.get("creditAccount", "")))
    if debit is None or credit is None:
        return None

    try:
        confidence = float(result.get("confidence") or DEFAULT_CONFIDENCE)
    except (TypeError, ValueError):
        confidence = DEFAULT_CONFIDENCE
    return AccountSuggestion(
        account_id=debit.id,
        contra_account_id=credit.id,
        confidence=min(max(confidence, 0.0), 1.0),
        reason=str(result.get("reason") or "AI suggestion"),
    )


class OpenAIClassifier(ExternalClassifier):
    """External classifier backed by an OpenAI-compatible chat endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = 10.0,
        api_url: str = OPENAI_API_URL,
        client: Optional[httpx.Client] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize OpenAI classifier.

        Args:
            api_key: Bearer token for the API
            model: Chat model name
            timeout: Request timeout in seconds
            api_url: Chat completions endpoint
            client: Preconfigured httpx client to use instead of a new one
            transport: Transport for a new client (tests use httpx.MockTransport)
        """
        if not api_key:
            raise ValueError("An API key is required for the OpenAI classifier")
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "OpenAIClassifier":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "temperature": 0.3,
            "max_tokens": 200,
            "response_format": {"type": "json_object"},
        }

    def classify(
        self,
        description: str,
        amount: Decimal,
        type: TransactionType,
        accounts: Sequence[Account],
    ) -> Optional[AccountSuggestion]:
        """Ask the model for a debit/credit account pair.

        Returns:
            AccountSuggestion, or None on an error status or unusable answer

        Raises:
            httpx.HTTPError: On network failures
        """
        if not accounts:
            return None
        messages = build_messages(description, amount, type, accounts)
        response = self._client.post(self.api_url, headers=self._headers(), json=self._payload(messages))

        if response.status_code != 200:
            logger.error(
                "Classifier API error %d: %s",
                response.status_code,
                response.text[:MAX_ERROR_DETAIL_CHARS],
            )
            return None

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("Unexpected classifier response: %s", response.text[:MAX_ERROR_DETAIL_CHARS])
            return None
        return parse_suggestion(content or "", accounts)
