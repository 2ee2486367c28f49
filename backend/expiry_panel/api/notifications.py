"""
Notifications API Endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import get_notifier, get_resolver, get_store
from ..exceptions import NotificationError
from ..services.config_resolver import ConfigResolver
from ..services.notifications import Notifier, run_expiry_sweep, send_test_message
from ..services.store import KVStore
from ..utils.security import get_current_operator

router = APIRouter()


@router.post("/check")
async def check_expiry_now(
    store: KVStore = Depends(get_store),
    resolver: ConfigResolver = Depends(get_resolver),
    notifier: Notifier = Depends(get_notifier),
    operator: str = Depends(get_current_operator)
):
    """Run the expiry sweep immediately"""
    result = await run_expiry_sweep(store, resolver, notifier)
    return result.to_dict()


@router.post("/test")
async def send_test_notification(
    store: KVStore = Depends(get_store),
    resolver: ConfigResolver = Depends(get_resolver),
    notifier: Notifier = Depends(get_notifier),
    operator: str = Depends(get_current_operator)
):
    """Send a test message with the effective Telegram credentials"""
    try:
        await send_test_message(store, resolver, notifier)
    except NotificationError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Telegram error: {e.description}"
        )
    return {"message": "Test notification sent"}
