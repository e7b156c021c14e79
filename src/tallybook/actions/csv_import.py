"""CSV import actions."""

from typing import Any, Optional, Sequence

from tallybook.actions.result import action_boundary
from tallybook.database.base import Database
from tallybook.domain.access import AccessService, SessionProvider
from tallybook.domain.classifier import AccountClassifier
from tallybook.domain.csv_import import ImportService
from tallybook.domain.csv_parser import validate_csv_file
from tallybook.domain.entities import AccountMapping, ExecuteImportRequest


class ImportActions:
    """Import operations for the signed-in user, wrapped in ActionResult."""

    def __init__(self, db: Database, session: SessionProvider, classifier: Optional[AccountClassifier] = None):
        """Initialize import actions.

        Args:
            db: Database instance
            session: Source of the signed-in user
            classifier: Account classifier used by previews
        """
        self.session = session
        self.access = AccessService(db)
        self.service = ImportService(db, classifier=classifier)

    def _user_id(self) -> int:
        return self.access.require_user(self.session).id

    @action_boundary
    def upload_csv_file(
        self,
        organization_id: int,
        content: bytes,
        file_name: str,
        template_id: Optional[int] = None,
    ):
        user_id = self._user_id()
        validate_csv_file(file_name, len(content))
        return self.service.upload_csv_file(
            user_id, organization_id, content, file_name, len(content), template_id=template_id
        )

    @action_boundary
    def preview_import(self, organization_id: int, import_id: int):
        return self.service.preview_import(self._user_id(), organization_id, import_id)

    @action_boundary
    def execute_import(
        self,
        organization_id: int,
        import_id: int,
        mappings: Sequence[AccountMapping],
        skip_duplicates: bool = True,
        create_rules_from_mappings: bool = False,
    ):
        request = ExecuteImportRequest(
            import_id=import_id,
            mappings=tuple(mappings),
            skip_duplicates=skip_duplicates,
            create_rules_from_mappings=create_rules_from_mappings,
        )
        return self.service.execute_import(self._user_id(), organization_id, request)

    @action_boundary
    def get_import_history(
        self,
        organization_id: int,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        order_by: str = "created_at",
        descending: bool = True,
    ):
        return self.service.get_import_history(
            self._user_id(),
            organization_id,
            page=page,
            page_size=page_size,
            search=search,
            order_by=order_by,
            descending=descending,
        )

    @action_boundary
    def create_import_rule(
        self,
        organization_id: int,
        description_pattern: str,
        account_id: int,
        contra_account_id: int,
        confidence: float = 0.8,
    ):
        return self.service.create_import_rule(
            self._user_id(), organization_id, description_pattern, account_id, contra_account_id, confidence
        )

    @action_boundary
    def get_import_rules(self, organization_id: int):
        return self.service.get_import_rules(self._user_id(), organization_id)

    @action_boundary
    def update_import_rule(self, organization_id: int, rule_id: int, **fields: Any):
        return self.service.update_import_rule(self._user_id(), organization_id, rule_id, **fields)

    @action_boundary
    def delete_import_rule(self, organization_id: int, rule_id: int):
        self.service.delete_import_rule(self._user_id(), organization_id, rule_id)

    @action_boundary
    def get_csv_templates(self):
        self._user_id()
        return self.service.get_csv_templates()
