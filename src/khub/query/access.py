"""Document access checks based on connector scope and user grants."""

import logging

from ..errors import NotFound, PermissionDenied
from ..models import Document
from ..storage.records import RecordStore

logger = logging.getLogger(__name__)


class DocumentAccess:
    """Decides whether a user may read a tenant document.

    Organization-scoped sources are readable by every member of the tenant.
    Personal sources need an explicit grant for the user. Anything else,
    including a missing user, is denied.
    """

    def __init__(self, records: RecordStore):
        self.records = records

    def scope_of(self, document: Document) -> str:
        if document.connector_id:
            connector = self.records.get_connector(document.tenant_id, document.connector_id)
            if connector is not None:
                return connector.scope
        return document.owner_scope

    def can_read(self, document: Document, user_id: str | None) -> bool:
        scope = self.scope_of(document)
        if scope == "organization":
            return True
        if scope != "personal" or not user_id:
            return False
        if document.connector_id:
            return self.records.has_permission(document.connector_id, user_id)
        return document.user_id == user_id

    def require(self, tenant_id: str, document_id: str, user_id: str | None) -> Document:
        """Load a document the user may read.

        Raises:
            NotFound: The document is not in the tenant.
            PermissionDenied: The user has no access to its source.
        """
        document = self.records.get_document(tenant_id, document_id)
        if document is None:
            raise NotFound(f"Document {document_id} not found")
        if not self.can_read(document, user_id):
            raise PermissionDenied(f"User {user_id} may not read document {document_id}")
        return document

    def readable_document(self, tenant_id: str, document_id: str, user_id: str | None) -> Document | None:
        """The document if it exists in the tenant and the user may read it."""
        try:
            return self.require(tenant_id, document_id, user_id)
        except NotFound:
            return None
        except PermissionDenied as e:
            logger.info(f"Access denied: {e}")
            return None
