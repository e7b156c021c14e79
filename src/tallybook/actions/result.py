"""Uniform result envelope returned by every public action."""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from tallybook.domain.errors import DomainError, ErrorCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionError:
    """Structured error: a machine-readable code and a message."""

    code: str
    message: str
    details: Optional[Any] = None

    def to_dict(self) -> dict[str, Any]:
        result = {"code": self.code, "message": self.message}
        if self.details is not None:
            result["details"] = self.details
        return result


@dataclass(frozen=True)
class ActionResult:
    """Either a success payload or an error, never both."""

    success: bool
    data: Any = None
    error: Optional[ActionError] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str, details: Optional[Any] = None) -> "ActionResult":
        return cls(success=False, error=ActionError(code, message, details))


def action_boundary(func: Callable[..., Any]) -> Callable[..., ActionResult]:
    """Run an action and translate any exception into a failed ActionResult.

    Domain errors keep their code, message and details. SQLAlchemy errors
    become DATABASE_ERROR and anything else INTERNAL_ERROR; both are logged
    with their traceback and reported with a generic message.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> ActionResult:
        try:
            return ActionResult.ok(func(*args, **kwargs))
        except DomainError as e:
            logger.debug("%s failed: %s %s", func.__name__, e.code, e.message)
            return ActionResult.fail(e.code, e.message, e.details)
        except SQLAlchemyError:
            logger.exception("Database error in %s", func.__name__)
            return ActionResult.fail(ErrorCode.DATABASE_ERROR, "A database error occurred.")
        except Exception:
            logger.exception("Unexpected error in %s", func.__name__)
            return ActionResult.fail(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred.")

    return wrapper
