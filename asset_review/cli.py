"""Command line entry point: serve the API, review one image, run a batch, seed presets."""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path

from asset_review.utils.config import BATCH_CONCURRENCY, HOST, MAX_BATCH_FILES, PORT, REVIEW_API_URL
from asset_review.utils.logger import get_logger


logger = get_logger("cli")


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    logger.info("Starting Asset Review API on %s:%s", args.host, args.port)
    uvicorn.run("asset_review.main:app", host=args.host, port=args.port, reload=False)
    return 0


def cmd_review(args: argparse.Namespace) -> int:
    from asset_review.services.vision_client import VisionAPIError, review_image_file

    print(f"Reviewing {args.image} ...", file=sys.stderr)
    try:
        outcome = review_image_file(Path(args.image), args.guidelines)
    except (FileNotFoundError, VisionAPIError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(json.dumps(outcome.model_dump(), indent=2))
    return 0


def _print_update(item, outcome) -> None:
    line = f"[{outcome.status.value:>10}] {item.display_name}"
    if outcome.error:
        line += f" – {outcome.error}"
    elif outcome.ghost_mode:
        line += f" – {outcome.message}"
    elif outcome.result:
        line += f" – {'PASS' if outcome.passed else 'FAIL'} ({outcome.result.get('confidence')}%)"
    print(line)


def _print_progress(completed: int, total: int) -> None:
    print(f"progress {completed}/{total}", file=sys.stderr)


async def _run_batch(args: argparse.Namespace) -> int:
    from asset_review.workers.batch_scheduler import BatchScheduler
    from asset_review.workers.review_client import ReviewAPIClient

    scheduler = BatchScheduler(
        max_files=args.max_files,
        concurrency=args.concurrency,
        on_update=_print_update,
        on_progress=_print_progress,
    )
    added = scheduler.add_files(args.files)
    for path, reason in added.rejected:
        print(f"skipped {path}: {reason}", file=sys.stderr)
    if not added.accepted:
        print("No image files to review", file=sys.stderr)
        return 1

    async with ReviewAPIClient(base_url=args.api_url) as client:
        summary = await scheduler.run(args.asset_type, client.review)
    print(json.dumps(asdict(summary), indent=2))
    return 0 if summary.errors == 0 else 2


def cmd_batch(args: argparse.Namespace) -> int:
    return asyncio.run(_run_batch(args))


def cmd_seed(args: argparse.Namespace) -> int:
    from asset_review.guidelines import seed_asset_types
    from asset_review.services.supabase_client import SupabaseStore

    names = seed_asset_types(SupabaseStore(), overwrite=args.overwrite)
    print(", ".join(names) if names else "nothing to seed")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="asset-review", description="AI brand-compliance review for image assets.")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("serve", help="Run the review API")
    s.add_argument("--host", default=HOST)
    s.add_argument("--port", type=int, default=PORT)
    s.set_defaults(func=cmd_serve)

    r = sub.add_parser("review", help="Check one local image against ad hoc guidelines")
    r.add_argument("image", help="Path to the image")
    r.add_argument("--guidelines", required=True, help='e.g. "Logo must be blue. No text allowed."')
    r.set_defaults(func=cmd_review)

    b = sub.add_parser("batch", help="Review many images through a running API")
    b.add_argument("files", nargs="+", help="Image files")
    b.add_argument("--asset-type", required=True, help="Asset type name, e.g. logo")
    b.add_argument("--concurrency", type=int, default=BATCH_CONCURRENCY, help="Simultaneous reviews")
    b.add_argument("--max-files", type=int, default=MAX_BATCH_FILES, help="Batch capacity")
    b.add_argument("--api-url", default=REVIEW_API_URL, help="Base URL of the review API")
    b.set_defaults(func=cmd_batch)

    sd = sub.add_parser("seed", help="Insert the default asset types")
    sd.add_argument("--overwrite", action="store_true", help="Rewrite text of presets that already exist")
    sd.set_defaults(func=cmd_seed)
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
