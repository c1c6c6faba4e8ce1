"""State changes applied automatically when a request is approved"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from fieldoffice.governance.models import (
    Member,
    Notification,
    Request,
    RequestKind,
    Role
)
from fieldoffice.governance.notifications import NotificationDispatcher
from fieldoffice.governance.state import PortalState
from fieldoffice.utils.constants import (
    DEPUTY_DIRECTOR_RANK,
    DIRECTOR_RANK,
    NOTIFICATION_MESSAGES,
    POSITIONS
)

logger = logging.getLogger('FieldOffice')

ConsequenceHandler = Callable[
    [PortalState, NotificationDispatcher, Request, Member, datetime],
    Notification
]

def install_director(state: PortalState, member: Member) -> Optional[Member]:
    """Make member the Director, demoting any other incumbent to deputy

    Returns the demoted incumbent, if there was one.
    """
    incumbent = state.director()
    if incumbent is not None and incumbent.id != member.id:
        incumbent.rank = DEPUTY_DIRECTOR_RANK
        incumbent.position = POSITIONS['DEPUTY_DIRECTOR']
        logger.info(f"Director {incumbent.nickname} demoted to Deputy Director")
    else:
        incumbent = None

    member.rank = DIRECTOR_RANK
    member.position = POSITIONS['DIRECTOR']
    logger.info(f"{member.nickname} installed as Director")
    return incumbent

def apply_promotion(state: PortalState,
                    dispatcher: NotificationDispatcher,
                    request: Request,
                    author: Member,
                    decided_at: datetime) -> Notification:
    new_rank = min(author.rank + 1, state.max_rank)
    if new_rank == DIRECTOR_RANK and author.role is not Role.ADMIN:
        install_director(state, author)
    else:
        author.rank = new_rank
    author.last_promotion_date = decided_at

    text = NOTIFICATION_MESSAGES['REQUEST_APPROVED'][request.kind.value].format(
        rank=state.rank_name(author.rank)
    )
    logger.info(f"{author.nickname} promoted to rank {author.rank}")
    return dispatcher.notify(author.id, text, decided_at)

def apply_penalty_removal(state: PortalState,
                          dispatcher: NotificationDispatcher,
                          request: Request,
                          author: Member,
                          decided_at: datetime) -> Notification:
    if author.penalties:
        removed = author.penalties.pop(0)
        logger.info(f"Oldest penalty of {author.nickname} removed: {removed.reason}")
    else:
        logger.info(f"Penalty removal approved for {author.nickname} with no active penalties")

    text = NOTIFICATION_MESSAGES['REQUEST_APPROVED'][request.kind.value]
    return dispatcher.notify(author.id, text, decided_at)

def apply_department_join(state: PortalState,
                          dispatcher: NotificationDispatcher,
                          request: Request,
                          author: Member,
                          decided_at: datetime) -> Notification:
    author.department_history.append(author.department)
    author.department = request.department
    author.is_head = False

    department_name = state.department_name(request.department)
    text = NOTIFICATION_MESSAGES['REQUEST_APPROVED'][request.kind.value].format(
        department=department_name
    )
    logger.info(f"{author.nickname} transferred to {department_name}")
    return dispatcher.notify(author.id, text, decided_at)

CONSEQUENCE_HANDLERS: Dict[RequestKind, ConsequenceHandler] = {
    RequestKind.PROMOTION: apply_promotion,
    RequestKind.PENALTY_REMOVAL: apply_penalty_removal,
    RequestKind.DEPARTMENT_JOIN: apply_department_join
}

def notify_rejection(state: PortalState,
                     dispatcher: NotificationDispatcher,
                     request: Request,
                     decided_at: datetime) -> Notification:
    text = NOTIFICATION_MESSAGES['REQUEST_REJECTED'][request.kind.value].format(
        department=state.department_name(request.department)
    )
    return dispatcher.notify(request.author_id, text, decided_at)
