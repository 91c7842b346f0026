from __future__ import annotations

import base64
import json

import pytest

httpx = pytest.importorskip("httpx")
pytest.importorskip("pydantic")
pytest.importorskip("pydantic_settings")
pytest.importorskip("tenacity")

from app.errors import ConfigurationError, StoreAPIError
from app.settings import Settings
from labeling.options import LabelingOptions
from labeling.pipeline import run_labeling
from llm.async_client import AsyncLLMClient
from store.client import StoreClient


class FakeStudio:
    """Routes store and LLM requests for one project."""

    def __init__(self, training: list[dict], testing: list[dict], answers: dict[int, str]) -> None:
        self.partitions = {"training": training, "testing": testing}
        self.answers = answers
        self.writes: list[tuple[str, str]] = []
        self.listing_fails = False

    def store(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1/api")
        if path == "/projects":
            return httpx.Response(
                200, json={"success": True, "projects": [{"id": 1, "name": "Pets", "owner": "Ada"}]}
            )
        if path == "/1/raw-data":
            if self.listing_fails:
                return httpx.Response(500, json={"success": False})
            params = request.url.params
            offset, limit = int(params["offset"]), int(params["limit"])
            samples = self.partitions[params["category"]][offset : offset + limit]
            return httpx.Response(200, json={"success": True, "samples": samples})
        if path.endswith("/image"):
            sample_id = path.split("/")[3]
            return httpx.Response(200, content=sample_id.encode())
        self.writes.append((request.method, path))
        return httpx.Response(200, json={"success": True})

    def llm(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        image_url = body["messages"][1]["content"][1]["image_url"]["url"]
        sample_id = int(_decode_image(image_url))
        answer = self.answers[sample_id]
        if answer == "garbage":
            content = "I am not sure"
        else:
            content = json.dumps({"label": answer, "reason": "because"})
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"role": "assistant", "content": content}}],
                "usage": {"prompt_tokens": 100, "completion_tokens": 10},
            },
        )


def _decode_image(data_uri: str) -> str:
    return base64.b64decode(data_uri.split(",", 1)[1]).decode()


def _sample(sample_id: int, label: str = "", chart_type: str = "image") -> dict:
    return {"id": sample_id, "filename": f"{sample_id}.jpg", "label": label, "chartType": chart_type}


def _settings(**overrides) -> Settings:
    values = dict(
        store_api_key="ei-key",
        openai_api_key="sk-key",
        page_size=2,
        progress_interval_seconds=0.01,
        inference_timeout_seconds=1.0,
        inference_max_retries=2,
        store_timeout_seconds=1.0,
        store_max_retries=2,
    )
    values.update(overrides)
    return Settings(**values)


def _clients(studio: FakeStudio) -> tuple[StoreClient, AsyncLLMClient]:
    store = StoreClient(
        "http://store",
        "ei-key",
        client=httpx.AsyncClient(transport=httpx.MockTransport(studio.store), base_url="http://store/v1/api"),
    )
    llm = AsyncLLMClient(
        "http://llm",
        "gpt-test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(studio.llm), base_url="http://llm"),
    )
    return store, llm


@pytest.mark.asyncio
async def test_labels_unlabeled_images_from_both_partitions() -> None:
    studio = FakeStudio(
        training=[_sample(5), _sample(2, label="done"), _sample(3), _sample(9, chart_type="video")],
        testing=[_sample(1), _sample(4)],
        answers={5: "cat", 3: "dog", 1: "cat", 4: "garbage"},
    )
    store, llm = _clients(studio)

    report = await run_labeling(
        _settings(), LabelingOptions(prompt="Cat or dog?", concurrency=2), store=store, llm=llm
    )

    assert report.project.name == "Pets"
    assert report.summary.total == 4
    assert report.summary.processed == 4
    assert report.summary.errors == 1
    assert report.summary.label_counts == {"cat": 2, "dog": 1}
    # 3 successful classifications plus 2 attempts at the unparseable one
    assert report.usage.prompt_tokens == 500
    edited = sorted(path for _, path in studio.writes if path.endswith("/edit-label"))
    assert edited == ["/1/raw-data/1/edit-label", "/1/raw-data/3/edit-label", "/1/raw-data/5/edit-label"]


@pytest.mark.asyncio
async def test_limit_keeps_lowest_ids_and_data_ids_select_samples() -> None:
    studio = FakeStudio(
        training=[_sample(7, label="old"), _sample(3, label="old")],
        testing=[_sample(8, label="old")],
        answers={3: "a", 7: "b", 8: "c"},
    )
    store, llm = _clients(studio)

    report = await run_labeling(
        _settings(),
        LabelingOptions(prompt="?", data_ids=[8, 7, 3], limit=2),
        store=store,
        llm=llm,
    )

    assert report.summary.total == 2
    assert report.summary.label_counts == {"a": 1, "b": 1}


@pytest.mark.asyncio
async def test_videos_are_converted_before_labeling() -> None:
    studio = FakeStudio(
        training=[_sample(1, chart_type="video"), {**_sample(2, chart_type="video"), "isProcessing": True}],
        testing=[_sample(3, chart_type="video")],
        answers={},
    )
    store, llm = _clients(studio)

    report = await run_labeling(
        _settings(),
        LabelingOptions(prompt="?", auto_convert_videos=True, frames_per_second=5),
        store=store,
        llm=llm,
    )

    assert report.videos_converted == 2
    assert ("POST", "/1/raw-data/1/split") in studio.writes
    assert ("POST", "/1/raw-data/3/split") in studio.writes
    assert report.summary.processed == 0


@pytest.mark.asyncio
async def test_listing_failure_aborts_the_run() -> None:
    studio = FakeStudio(training=[_sample(1)], testing=[], answers={1: "x"})
    studio.listing_fails = True
    store, llm = _clients(studio)

    with pytest.raises(StoreAPIError):
        await run_labeling(_settings(), LabelingOptions(prompt="?"), store=store, llm=llm)


@pytest.mark.asyncio
async def test_missing_credentials_are_fatal() -> None:
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        await run_labeling(_settings(openai_api_key=None), LabelingOptions(prompt="?"))
