from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from asset_review.routes.admin import router as admin_router
from asset_review.routes.health import router as health_router
from asset_review.routes.review import router as review_router
from asset_review.services.review_handler import Reviewer
from asset_review.services.supabase_client import ReviewStore, SupabaseStore
from asset_review.services.vision_client import VisionClient
from asset_review.utils.config import HOST, PORT, UPLOAD_DIR, ensure_dirs
from asset_review.utils.logger import get_logger


logger = get_logger("server")


def create_app(
    *,
    store: Optional[ReviewStore] = None,
    vision: Optional[Reviewer] = None,
    upload_dir: Optional[Path] = None,
) -> FastAPI:
    ensure_dirs()
    app = FastAPI(title="Asset Review API", version="1.0.0")
    app.state.store = store if store is not None else SupabaseStore()
    app.state.vision = vision if vision is not None else VisionClient()
    app.state.upload_dir = upload_dir or UPLOAD_DIR

    # submitter UI is served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {"service": "asset-review", "status": "ok"}

    app.include_router(review_router)
    # health stays unauthenticated; admin routes carry their own bearer check
    app.include_router(health_router)
    app.include_router(admin_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting Asset Review API on %s:%s", HOST, PORT)
    uvicorn.run("asset_review.main:app", host=HOST, port=PORT, reload=False)
