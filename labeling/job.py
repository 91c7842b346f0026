"""Labels one sample: ask the model, then write the answer back to the store."""
from __future__ import annotations

import logging

from engine.progress import ProgressState
from engine.retry import LoggingObserver, RetryPolicy, run_with_retry
from engine.scheduler import JobResult
from llm.async_client import AsyncLLMClient
from llm.parsers import Classification
from store.client import StoreClient
from store.schemas import ProposedChanges, Sample

from .options import LabelingOptions

LOGGER = logging.getLogger("autolabel.labeling.job")

INFERENCE_OPERATION = "completions.create"
STORE_OPERATION = "store.api"


class SampleLabeler:
    """Job function for :func:`engine.scheduler.label_all`.

    Both remote steps run under their own retry policy; once either one gives
    up, the resulting ``RetriesExhausted`` marks the sample as failed.
    """

    def __init__(
        self,
        store: StoreClient,
        llm: AsyncLLMClient,
        project_id: int,
        options: LabelingOptions,
        *,
        inference_timeout: float = 60.0,
        inference_max_retries: int = 3,
        store_timeout: float = 60.0,
        store_max_retries: int = 3,
    ) -> None:
        self._store = store
        self._llm = llm
        self._project_id = project_id
        self._options = options
        self._inference_timeout = inference_timeout
        self._inference_max_retries = inference_max_retries
        self._store_timeout = store_timeout
        self._store_max_retries = store_max_retries

    async def __call__(self, sample: Sample, progress: ProgressState) -> JobResult:
        classification = await run_with_retry(
            lambda: self._classify(sample),
            RetryPolicy(
                name=INFERENCE_OPERATION,
                max_retries=self._inference_max_retries,
                timeout=self._inference_timeout,
                observer=LoggingObserver(
                    action=f"Failed to label {sample.filename} (ID: {sample.id})",
                    logger=LOGGER,
                    prefix=progress.position,
                ),
            ),
        )
        await run_with_retry(
            lambda: self._apply(sample, classification),
            RetryPolicy(
                name=STORE_OPERATION,
                max_retries=self._store_max_retries,
                timeout=self._store_timeout,
                observer=LoggingObserver(
                    action=f"Failed to update metadata for {sample.filename} (ID: {sample.id})",
                    logger=LOGGER,
                    prefix=progress.position,
                ),
            ),
        )
        return JobResult(label=classification.label, metadata=dict(sample.metadata))

    async def _classify(self, sample: Sample) -> Classification:
        image = await self._store.get_sample_image(self._project_id, sample.id)
        return await self._llm.classify(
            image, self._options.prompt, detail=self._options.image_quality
        )

    async def _apply(self, sample: Sample, classification: Classification) -> None:
        sample.metadata["reason"] = classification.reason
        sample.metadata["prompt"] = self._options.prompt
        disable = self._options.should_disable(classification.label)

        if self._options.propose_actions_job_id is not None:
            await self._store.set_proposed_changes(
                self._project_id,
                sample.id,
                self._options.propose_actions_job_id,
                ProposedChanges(
                    label=classification.label,
                    metadata=sample.metadata,
                    # None keeps the sample's current state
                    is_disabled=True if disable else None,
                ),
            )
            return

        if disable:
            await self._store.disable_sample(self._project_id, sample.id)
        await self._store.edit_label(self._project_id, sample.id, classification.label)
        await self._store.set_metadata(self._project_id, sample.id, sample.metadata)
