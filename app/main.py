from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Sequence

from app.errors import LabelerError, describe_error
from app.logging import configure_logging
from app.settings import get_settings
from labeling.options import (
    LabelingOptions,
    expand_prompt,
    load_data_ids,
    parse_disable_labels,
    parse_flag,
)
from labeling.pipeline import run_labeling

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autolabel", description="Label unlabeled samples using an LLM"
    )
    parser.add_argument(
        "--prompt",
        required=True,
        help="A prompt asking a question to the LLM; the answer should be a single label. "
        "E.g. \"Is there a human in this picture, respond with only 'yes' or 'no'.\"",
    )
    parser.add_argument(
        "--disable-labels",
        help="Disable samples that get one of these labels (comma separated)",
    )
    parser.add_argument(
        "--image-quality",
        default="auto",
        help='Quality of the image to send to the model: "auto", "low" or "high"',
    )
    parser.add_argument("--limit", type=int, help="Max number of samples to process")
    parser.add_argument("--concurrency", type=int, default=1, help="Concurrency (default: 1)")
    parser.add_argument(
        "--auto-convert-videos",
        help='Split videos into individual frames first (1, 0, "true" or "false")',
    )
    parser.add_argument(
        "--extract-frames-per-second",
        type=int,
        default=10,
        help="Frames per second to extract when converting videos (default: 10)",
    )
    parser.add_argument("--data-ids-file", type=Path, help="File with IDs (as JSON)")
    parser.add_argument(
        "--propose-actions",
        type=int,
        metavar="JOB_ID",
        help="Only propose the changes under this job instead of applying them",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logs")
    return parser


def options_from_args(args: argparse.Namespace) -> LabelingOptions:
    data_ids = load_data_ids(args.data_ids_file) if args.data_ids_file else None
    return LabelingOptions(
        prompt=expand_prompt(args.prompt),
        disable_labels=parse_disable_labels(args.disable_labels),
        image_quality=args.image_quality,
        limit=args.limit,
        concurrency=args.concurrency,
        auto_convert_videos=parse_flag(args.auto_convert_videos),
        frames_per_second=args.extract_frames_per_second,
        data_ids=data_ids,
        propose_actions_job_id=args.propose_actions,
        verbose=args.verbose,
    )


async def _run(options: LabelingOptions) -> None:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _shutdown() -> None:
        LOGGER.warning("Interrupt received, finishing samples in flight...")
        cancel.set()

    try:
        loop.add_signal_handler(signal.SIGINT, _shutdown)
        loop.add_signal_handler(signal.SIGTERM, _shutdown)
    except NotImplementedError:  # pragma: no cover - Windows event loops
        pass
    await run_labeling(get_settings(), options, cancel=cancel)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    # the scheduler that launches this tool may append its own flags
    args, _unknown = parser.parse_known_args(argv)

    settings = get_settings()
    configure_logging("DEBUG" if args.verbose else settings.log_level, settings.log_json)

    try:
        settings.require_credentials()
        options = options_from_args(args)
    except LabelerError as exc:
        LOGGER.error("%s", exc)
        return 1

    try:
        asyncio.run(_run(options))
    except LabelerError as exc:
        LOGGER.error("Failed to label data: %s", describe_error(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
