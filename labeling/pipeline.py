"""End-to-end labeling run over a store project."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from app.logging import log_event
from app.settings import Settings
from engine.pagination import collect
from engine.progress import ProgressReporter, ProgressState, ProgressSummary
from engine.scheduler import label_all
from llm.async_client import AsyncLLMClient, TokenUsage
from store.client import SampleListing, StoreClient
from store.schemas import Project, Sample

from .job import SampleLabeler
from .options import LabelingOptions, describe_ids
from .predicates import PARTITIONS, has_id_in, is_unconverted_video, is_unlabeled_image

LOGGER = logging.getLogger("autolabel.labeling.pipeline")


@dataclass(frozen=True)
class LabelingReport:
    project: Project
    summary: ProgressSummary
    usage: TokenUsage
    model: str
    videos_converted: int = 0


class LabelingPipeline:
    """Converts videos if asked, finds the samples to label and labels them."""

    def __init__(
        self,
        settings: Settings,
        options: LabelingOptions,
        store: StoreClient,
        llm: AsyncLLMClient,
        *,
        cancel: asyncio.Event | None = None,
    ) -> None:
        self._settings = settings
        self._options = options
        self._store = store
        self._llm = llm
        self._cancel = cancel

    async def run(self) -> LabelingReport:
        project = await self._store.current_project()
        self._log_header(project)
        listing = SampleListing(self._store, project.id)

        converted = 0
        if self._options.auto_convert_videos:
            converted = await self._convert_videos(listing, project.id)

        samples = await self._find_samples(listing)
        samples.sort(key=lambda sample: sample.id)
        if self._options.limit is not None:
            samples = samples[: self._options.limit]

        labeler = SampleLabeler(
            self._store,
            self._llm,
            project.id,
            self._options,
            inference_timeout=self._settings.inference_timeout_seconds,
            inference_max_retries=self._settings.inference_max_retries,
            store_timeout=self._settings.store_timeout_seconds,
            store_max_retries=self._settings.store_max_retries,
        )

        LOGGER.info("Labeling %s samples...", f"{len(samples):,}")
        summary = await label_all(
            samples,
            self._options.concurrency,
            labeler,
            progress_interval=self._settings.progress_interval_seconds,
            report=_log_labeling_progress,
            cancel=self._cancel,
            describe=_describe_failure,
        )
        _log_labeling_progress(summary)
        LOGGER.info("Done labeling samples!")
        log_event(
            LOGGER,
            "labeling_finished",
            project_id=project.id,
            processed=summary.processed,
            errors=summary.errors,
            labels=summary.label_counts,
        )
        LOGGER.info(
            "LLM usage info: model=%s input tokens=%s output tokens=%s",
            self._llm.model,
            f"{self._llm.usage.prompt_tokens:,}",
            f"{self._llm.usage.completion_tokens:,}",
        )
        return LabelingReport(
            project=project,
            summary=summary,
            usage=self._llm.usage,
            model=self._llm.model,
            videos_converted=converted,
        )

    async def _find_samples(self, listing: SampleListing) -> list[Sample]:
        if self._options.data_ids is not None:
            what, predicate = "data by ID", has_id_in(self._options.data_ids)
        else:
            what, predicate = "unlabeled data", is_unlabeled_image
        return await self._collect(listing, predicate, what)

    async def _collect(
        self, listing: SampleListing, predicate: Callable[[Sample], bool], what: str
    ) -> list[Sample]:
        LOGGER.info("Finding %s...", what)
        found: list[Sample] = []
        reporter = ProgressReporter(
            self._settings.progress_interval_seconds,
            lambda: LOGGER.info("Still finding %s (found %d samples)...", what, len(found)),
        )
        async with reporter:
            await collect(listing, self._settings.page_size, predicate, PARTITIONS, into=found)
        LOGGER.info("Finding %s OK (found %d samples)", what, len(found))
        return found

    async def _convert_videos(self, listing: SampleListing, project_id: int) -> int:
        videos = await self._collect(listing, is_unconverted_video, "unconverted videos")
        total = len(videos)
        LOGGER.info("Converting %d videos...", total)
        # sequential on purpose: splitting is heavy on the store side
        progress = ProgressState(total=total)
        reporter = ProgressReporter(
            self._settings.progress_interval_seconds,
            lambda: LOGGER.info("%s Still converting videos...", progress.position()),
        )
        async with reporter:
            for video in videos:
                await self._store.split_sample_in_frames(
                    project_id, video.id, self._options.frames_per_second
                )
                progress.record_success("converted")
        LOGGER.info("Converting %d videos OK", total)
        return total

    def _log_header(self, project: Project) -> None:
        options = self._options
        LOGGER.info('Labeling unlabeled data for "%s / %s"', project.owner, project.name)
        LOGGER.info('    Prompt: "%s"', options.prompt)
        LOGGER.info(
            "    Disable samples with labels: %s",
            ", ".join(options.disable_labels) or "-",
        )
        LOGGER.info("    Image quality: %s", options.image_quality)
        LOGGER.info(
            "    Limit no. of samples to label to: %s",
            f"{options.limit:,}" if options.limit is not None else "No limit",
        )
        LOGGER.info("    Concurrency: %d", options.concurrency)
        LOGGER.info("    Auto-convert videos: %s", "Yes" if options.auto_convert_videos else "No")
        if options.auto_convert_videos:
            LOGGER.info("    Video conversion fps: %d", options.frames_per_second)
        if options.data_ids is not None:
            LOGGER.info("    IDs: %s", describe_ids(options.data_ids))
        if options.dry_run:
            LOGGER.info("    Only proposing changes for job %d", options.propose_actions_job_id)


def _describe_failure(sample: Sample) -> str:
    return f"Failed to label sample {sample.describe()}"


def _log_labeling_progress(progress: ProgressState | ProgressSummary) -> None:
    LOGGER.info("%s Labeling samples... %s", progress.position(), progress.breakdown())


async def run_labeling(
    settings: Settings,
    options: LabelingOptions,
    *,
    store: StoreClient | None = None,
    llm: AsyncLLMClient | None = None,
    cancel: asyncio.Event | None = None,
) -> LabelingReport:
    """Build the remote clients from ``settings`` unless given, and run the pipeline."""
    settings.require_credentials()
    store = store or StoreClient(
        settings.store_endpoint,
        settings.store_api_key or "",
        timeout=settings.store_timeout_seconds,
    )
    llm = llm or AsyncLLMClient(
        settings.llm_endpoint,
        settings.llm_model,
        api_key=settings.openai_api_key,
        timeout=settings.inference_timeout_seconds,
    )
    async with store, llm:
        return await LabelingPipeline(settings, options, store, llm, cancel=cancel).run()
