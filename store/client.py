"""Async HTTP client for the remote sample store."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from app.errors import StoreAPIError

from .schemas import Category, Project, ProposedChanges, Sample, SamplePage

LOGGER = logging.getLogger("autolabel.store.client")


class StoreClient:
    """Thin wrapper over the store's project raw-data endpoints.

    Every method raises :class:`StoreAPIError` for transport failures, non-2xx
    responses and bodies that report ``success: false``.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        *,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("store endpoint is required")
        self._client = client or httpx.AsyncClient(
            base_url=f"{endpoint.rstrip('/')}/v1/api",
            headers={"x-api-key": api_key, "Accept": "application/json"},
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "StoreClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StoreAPIError(
                f"{method} {path} returned {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.TimeoutException as exc:
            raise StoreAPIError(f"{method} {path} timed out") from exc
        except httpx.RequestError as exc:
            raise StoreAPIError(f"{method} {path} failed: {exc}") from exc
        return response

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._send(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError as exc:
            raise StoreAPIError(f"{method} {path} returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise StoreAPIError(f"{method} {path} returned an unexpected body")
        if body.get("success") is False:
            raise StoreAPIError(body.get("error") or f"{method} {path} was not successful")
        return body

    async def list_projects(self) -> list[Project]:
        body = await self._request_json("GET", "/projects")
        return [Project.model_validate(item) for item in body.get("projects", [])]

    async def current_project(self) -> Project:
        """Return the project the API key belongs to."""
        projects = await self.list_projects()
        if not projects:
            raise StoreAPIError("API key does not give access to any project")
        return projects[0]

    async def list_samples(
        self, project_id: int, category: Category, *, offset: int, limit: int
    ) -> SamplePage:
        body = await self._request_json(
            "GET",
            f"/{project_id}/raw-data",
            params={"category": category, "labels": "", "offset": offset, "limit": limit},
        )
        return SamplePage.model_validate(body)

    async def get_sample_image(self, project_id: int, sample_id: int) -> bytes:
        response = await self._send("GET", f"/{project_id}/raw-data/{sample_id}/image")
        return response.content

    async def edit_label(self, project_id: int, sample_id: int, label: str) -> None:
        await self._request_json(
            "POST", f"/{project_id}/raw-data/{sample_id}/edit-label", json={"label": label}
        )

    async def disable_sample(self, project_id: int, sample_id: int) -> None:
        await self._request_json("POST", f"/{project_id}/raw-data/{sample_id}/disable")

    async def set_metadata(
        self, project_id: int, sample_id: int, metadata: dict[str, Any]
    ) -> None:
        await self._request_json(
            "POST", f"/{project_id}/raw-data/{sample_id}/metadata", json={"metadata": metadata}
        )

    async def set_proposed_changes(
        self, project_id: int, sample_id: int, job_id: int, changes: ProposedChanges
    ) -> None:
        await self._request_json(
            "POST",
            f"/{project_id}/raw-data/{sample_id}/propose-changes",
            json={
                "jobId": job_id,
                "proposedChanges": changes.model_dump(by_alias=True, exclude_none=True),
            },
        )

    async def split_sample_in_frames(self, project_id: int, sample_id: int, fps: int) -> None:
        await self._request_json(
            "POST", f"/{project_id}/raw-data/{sample_id}/split", json={"fps": fps}
        )


class SampleListing:
    """Serves one project's sample pages to :func:`engine.pagination.collect`."""

    def __init__(self, store: StoreClient, project_id: int) -> None:
        self._store = store
        self._project_id = project_id

    async def fetch_page(self, partition: str, offset: int, limit: int) -> Sequence[Sample]:
        page = await self._store.list_samples(
            self._project_id, partition, offset=offset, limit=limit  # type: ignore[arg-type]
        )
        LOGGER.debug(
            "fetched sample page",
            extra={"partition": partition, "offset": offset, "count": len(page.samples)},
        )
        return page.samples
