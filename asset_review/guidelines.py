"""Starter guideline presets, loaded into the guideline store by `asset-review seed`."""

from asset_review.models.schemas import AssetType
from asset_review.services.supabase_client import ReviewStore
from asset_review.utils.logger import get_logger


logger = get_logger("guidelines")


DEFAULT_ASSET_TYPES = [
    AssetType(
        name="banner",
        description="Web banners and ads",
        guidelines="""BANNER GUIDELINES:
- Banner dimensions must be appropriate for intended use
- Text must be readable and properly sized (not too small)
- Images must be high quality and not pixelated
- Brand colors must be consistent with brand palette
- Call-to-action must be clear and visible
- No clutter - maintain visual hierarchy
- Safe zones must be respected for text and key elements""",
    ),
    AssetType(
        name="logo",
        description="Brand logos and marks",
        guidelines="""LOGO GUIDELINES:
- Logo must maintain proper aspect ratio (not stretched or distorted)
- Minimum clear space around logo must be respected
- Logo colors must match brand palette (no unauthorized color variations)
- Logo must be high resolution and not pixelated
- No unauthorized modifications or additions to logo elements
- Background must not interfere with logo visibility""",
    ),
    AssetType(
        name="print",
        description="Print materials and collateral",
        guidelines="""PRINT GUIDELINES:
- Resolution must be at least 300 DPI for print quality
- Colors must be CMYK-compatible (no neon/RGB-only colors)
- Bleed area must be included if required
- Text must be minimum 8pt for readability
- Logo must be vector or high-resolution
- No compression artifacts or pixelation
- Proper margins and safe zones must be maintained""",
    ),
    AssetType(
        name="social",
        description="Social media posts and graphics",
        guidelines="""SOCIAL MEDIA GUIDELINES:
- Image must be optimized for social platform dimensions
- Text overlay must not exceed 20% of image area
- Brand logo must be visible but not overpowering
- Colors must be vibrant and attention-grabbing
- Key message must be immediately clear
- Contact/website info must be included if promotional
- Must be visually consistent with brand identity""",
    ),
]


def seed_asset_types(store: ReviewStore, overwrite: bool = False) -> list[str]:
    """Inserts missing presets (or rewrites their text when overwrite is set); returns touched names."""
    touched = []
    for preset in DEFAULT_ASSET_TYPES:
        existing = store.get_asset_type(preset.name)
        if existing is None:
            store.create_asset_type(preset)
        elif overwrite:
            store.update_asset_type(preset.name, {"description": preset.description, "guidelines": preset.guidelines})
        else:
            logger.info("Asset type %s already present; skipping", preset.name)
            continue
        touched.append(preset.name)
    logger.info("Seeded %d asset type(s)", len(touched))
    return touched
