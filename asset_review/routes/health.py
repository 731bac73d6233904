from datetime import datetime, timezone

import requests
from fastapi import APIRouter

from asset_review.services import supabase_client
from asset_review.utils.config import VISION_API_KEY, VISION_API_URL
from asset_review.utils.logger import get_logger


router = APIRouter(prefix="/api", tags=["health"])
logger = get_logger("health")


@router.get("/health")
def health():
    status = {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat(), "vision": "down", "supabase": "down"}
    # Vision API
    if not VISION_API_URL or not VISION_API_KEY:
        status["vision"] = "not_configured"
    else:
        try:
            r = requests.get(
                f"{VISION_API_URL.rstrip('/')}/models",
                headers={"Authorization": f"Bearer {VISION_API_KEY}"},
                timeout=3,
            )
            status["vision"] = "ok" if r.status_code == 200 else "down"
        except requests.RequestException as e:
            logger.warning("Vision API health probe failed: %s", e)
    # Supabase
    try:
        if supabase_client.is_configured() and supabase_client.get_client():
            status["supabase"] = "ok"
        else:
            status["supabase"] = "not_configured"
    except Exception as e:  # noqa: BLE001
        logger.warning("Supabase health probe failed: %s", e)
    return status
