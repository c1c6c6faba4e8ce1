"""Pending and archived request storage"""

import logging
from typing import Dict, Iterable, List, Optional

from fieldoffice.governance.authority import can_review
from fieldoffice.governance.errors import AlreadyDecided, DuplicatePending, NotFound, ValidationError
from fieldoffice.governance.models import Member, Request, RequestKind

logger = logging.getLogger('FieldOffice')

ARCHIVE_ID_FORMAT = "R-{id:06d}"

def archive_id_for(request_id: int) -> str:
    return ARCHIVE_ID_FORMAT.format(id=request_id)

class RequestStore:
    """Holds live requests by id and the append-only decision archive

    Pending and archived requests share one id namespace; a request leaves
    the pending set at the moment it is archived, so it can be decided once.
    """

    def __init__(self):
        self._pending: Dict[int, Request] = {}
        self._archived: Dict[int, Request] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def has_pending(self, author_id: int, kind: RequestKind) -> bool:
        return any(
            r.author_id == author_id and r.kind is kind
            for r in self._pending.values()
        )

    def submit(self, request: Request) -> Request:
        if not request.is_pending:
            raise ValidationError("Only pending requests can be submitted.")
        if request.id in self._pending or request.id in self._archived:
            raise ValidationError(f"Request id {request.id} is already in use.")
        if self.has_pending(request.author_id, request.kind):
            raise DuplicatePending()
        self._pending[request.id] = request
        logger.info(f"Request {request.id} ({request.kind.value}) submitted by {request.author_nickname}")
        return request

    def get_pending(self, request_id: int) -> Request:
        request = self._pending.get(request_id)
        if request is not None:
            return request
        if request_id in self._archived:
            raise AlreadyDecided()
        raise NotFound(f"Request {request_id} was not found.")

    def pending(self) -> List[Request]:
        return sorted(self._pending.values(), key=lambda r: (r.submitted_at, r.id))

    def pending_for_author(self, author_id: int) -> List[Request]:
        return [r for r in self.pending() if r.author_id == author_id]

    def list_pending_for(self, reviewer: Member) -> List[Request]:
        """Review queue for reviewer, oldest submission first"""
        return [r for r in self.pending() if can_review(reviewer, r)]

    def archive(self, request: Request) -> Request:
        if request.is_pending:
            raise ValidationError("A request must be decided before it is archived.")
        if self._pending.pop(request.id, None) is None:
            if request.id in self._archived:
                raise AlreadyDecided()
            raise NotFound(f"Request {request.id} was not found.")
        request.archive_id = request.archive_id or archive_id_for(request.id)
        self._archived[request.id] = request
        logger.info(f"Request {request.id} archived as {request.archive_id} ({request.status.value})")
        return request

    def list_archive(self) -> List[Request]:
        """Archived requests, newest decision first"""
        return sorted(
            self._archived.values(),
            key=lambda r: (r.decided_at, r.id),
            reverse=True
        )

    def get_archived(self, request_id: int) -> Request:
        request = self._archived.get(request_id)
        if request is None:
            raise NotFound(f"Archived request {request_id} was not found.")
        return request

    def find_archived(self, archive_id: str) -> Optional[Request]:
        return next(
            (r for r in self._archived.values() if r.archive_id == archive_id),
            None
        )

    def search_archive(self, query: str) -> List[Request]:
        """Match archive ids or author nicknames, case-insensitively"""
        needle = query.strip().lower()
        if not needle:
            return self.list_archive()
        return [
            r for r in self.list_archive()
            if needle in (r.archive_id or '').lower() or needle in r.author_nickname.lower()
        ]

    def restore(self, requests: Iterable[Request]) -> None:
        """Load previously persisted requests without re-running submission checks"""
        for request in requests:
            if request.archive_id:
                self._archived[request.id] = request
            else:
                self._pending[request.id] = request

    def all_requests(self) -> List[Request]:
        return list(self._pending.values()) + list(self._archived.values())
