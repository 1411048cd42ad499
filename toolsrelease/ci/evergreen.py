# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Evergreen REST v2 client used to query CI tasks.

Only two queries are needed:

    GET {base}/projects/{project}/revisions/{commit}/tasks   (paginated via Link)
    GET {base}/tasks/{task_id}                               (artifacts[].url)

Any HTTP or transport failure becomes a NetworkError; nothing is retried.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from toolsrelease.config.schema import EvergreenConfig
from toolsrelease.errors import NetworkError
from toolsrelease.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)

PATCH_REQUESTERS: frozenset[str] = frozenset({"patch_request", "github_pull_request"})
IS_PATCH_ENV_VAR = "is_patch"
API_USER_ENV_VAR = "EVG_USER"
API_KEY_ENV_VAR = "EVG_KEY"


@dataclass(frozen=True)
class Task:
    task_id: str
    variant: str
    display_name: str
    requester: str = "gitter_request"

    def is_patch(self) -> bool:
        return self.requester in PATCH_REQUESTERS


@dataclass(frozen=True)
class Artifact:
    url: str
    name: str = ""

    @property
    def extension(self) -> str:
        """Extension of the URL path, e.g. ".tgz". Query strings are ignored."""
        return PurePosixPath(urlparse(self.url).path).suffix


def current_build_is_patch(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Whether the CI build running this process is itself a patch build."""
    env = os.environ if environ is None else environ
    return env.get(IS_PATCH_ENV_VAR, "").lower() == "true"


def _task_from_json(data: Mapping[str, Any]) -> Task:
    try:
        return Task(
            task_id=str(data["task_id"]),
            variant=str(data["build_variant"]),
            display_name=str(data["display_name"]),
            requester=str(data.get("requester", "")),
        )
    except KeyError as err:
        raise NetworkError("parse evergreen task", f"missing field {err}") from err


class EvergreenClient:
    """Thin synchronous client over httpx. Usable as a context manager."""

    def __init__(
        self,
        settings: EvergreenConfig,
        http_client: Optional[httpx.Client] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        env = os.environ if environ is None else environ
        self._settings = settings
        headers: dict[str, str] = {"Accept": "application/json"}
        api_user = settings.api_user or env.get(API_USER_ENV_VAR)
        api_key = settings.api_key or env.get(API_KEY_ENV_VAR)
        if api_user:
            headers["Api-User"] = api_user
        if api_key:
            headers["Api-Key"] = api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=settings.timeout_seconds)
        self._headers = headers

    def __enter__(self) -> "EvergreenClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _get(self, url: str, operation: str) -> httpx.Response:
        try:
            response = self._client.get(url, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as err:
            raise NetworkError(
                operation, f"{err.response.status_code} {err.response.reason_phrase} from {url}"
            ) from err
        except httpx.HTTPError as err:
            raise NetworkError(operation, f"{type(err).__name__}: {err}") from err
        return response

    def get_tasks_for_revision(self, commit: str) -> list[Task]:
        """Every task of every build for the commit, across all result pages."""
        url: Optional[str] = (
            f"{self._settings.base_url}/projects/{self._settings.project}/revisions/{commit}/tasks"
        )
        tasks: list[Task] = []
        fetched: set[str] = set()
        while url is not None:
            if url in fetched:
                _logger.warning("Pagination loops back to a fetched page", extra={"url": url})
                break
            fetched.add(url)
            response = self._get(url, "get evergreen tasks")
            body = response.json()
            if not isinstance(body, list):
                raise NetworkError("get evergreen tasks", f"expected a JSON list from {url}")
            tasks.extend(_task_from_json(item) for item in body)
            url = response.links.get("next", {}).get("url")

        _logger.info(
            "Fetched evergreen tasks",
            extra={"commit": commit, "task_count": len(tasks), "pages": len(fetched)},
        )
        return tasks

    def get_artifacts_for_task(self, task_id: str) -> list[Artifact]:
        url = f"{self._settings.base_url}/tasks/{task_id}"
        body = self._get(url, f"get artifacts for {task_id}").json()
        if not isinstance(body, dict):
            raise NetworkError(f"get artifacts for {task_id}", "expected a JSON object")
        artifacts = [
            Artifact(url=str(item["url"]), name=str(item.get("name", "")))
            for item in body.get("artifacts") or []
            if item.get("url")
        ]
        _logger.debug(
            "Fetched task artifacts",
            extra={"task_id": task_id, "artifact_count": len(artifacts)},
        )
        return artifacts
