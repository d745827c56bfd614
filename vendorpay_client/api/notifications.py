"""
Notifications API - transient messages raised by mutations and session teardown.
"""
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends

from vendorpay_client.application.interfaces.di_container import get_notification_center
from vendorpay_client.infrastructure.notifications.notification_center import NotificationCenter

router = APIRouter()


@router.get("/")
async def drain_notifications(center: NotificationCenter = Depends(get_notification_center)) -> List[dict]:
    """Return pending notifications and mark them shown."""
    return [asdict(notification) for notification in center.drain()]


@router.get("/pending")
async def peek_notifications(center: NotificationCenter = Depends(get_notification_center)) -> List[dict]:
    return [asdict(notification) for notification in center.peek()]
