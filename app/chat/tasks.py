"""
Celery tasks for chat app.

This module defines async tasks for:
- Invitation expiry

Related files:
    - services.py: InvitationService
    - config/settings.py: CELERY_BEAT_SCHEDULE

Usage:
    from chat.tasks import expire_pending_invitations

    expire_pending_invitations.delay()
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def expire_pending_invitations(self) -> int:
    """
    Mark overdue pending invitations as expired.

    Runs hourly via Celery Beat. Invitations are also expired lazily when
    answered, so a missed run only delays the status change.

    Returns:
        Number of invitations expired
    """
    from chat.services import InvitationService

    count = InvitationService.expire_stale()
    logger.info(f"Invitation sweep expired {count} invitation(s)")
    return count
