# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Sign-task reconciliation.

Before anything is published, the CI results for the release commit must
cover the platform matrix exactly:

  1. fetch every task for the commit
  2. keep non-patch tasks named "sign"
  3. every kept task's variant must be in the matrix
  4. the number of kept tasks must equal the matrix size
  5. every task must have exactly as many artifacts as its platform expects

Each check failing is fatal. An unknown variant means the matrix is out of
date; a count mismatch means a platform would be missing from the release.
Artifact lists are only requested once steps 1-4 have passed.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from toolsrelease.ci.evergreen import Artifact, Task
from toolsrelease.errors import ReconciliationError
from toolsrelease.logging.logger import get_logger
from toolsrelease.platforms.matrix import Platform, PlatformMatrix

_logger: logging.Logger = get_logger(__name__)

SIGN_TASK_NAME = "sign"


class TaskSource(Protocol):
    def get_tasks_for_revision(self, commit: str) -> list[Task]: ...

    def get_artifacts_for_task(self, task_id: str) -> list[Artifact]: ...


@dataclass(frozen=True)
class ResolvedSignTask:
    task: Task
    platform: Platform
    artifacts: tuple[Artifact, ...]


class TaskReconciler:
    def __init__(self, ci: TaskSource, matrix: PlatformMatrix) -> None:
        self._ci = ci
        self._matrix = matrix

    def sign_tasks(self, commit: str) -> list[tuple[Task, Platform]]:
        """
        Steps 1-4: the sign tasks for the commit, each paired with its platform.

        Raises:
            ReconciliationError: Unknown variant, or count != matrix size.
        """
        resolved: list[tuple[Task, Platform]] = []
        for task in self._ci.get_tasks_for_revision(commit):
            if task.is_patch() or task.display_name != SIGN_TASK_NAME:
                continue

            platform = self._matrix.get_by_variant(task.variant)
            if platform is None:
                raise ReconciliationError(
                    "match sign tasks to platforms",
                    f"found sign task {task.task_id} with unknown variant '{task.variant}'",
                )
            resolved.append((task, platform))

        expected = self._matrix.count()
        if len(resolved) != expected:
            raise ReconciliationError(
                "count sign tasks",
                f"found {len(resolved)} sign tasks, but expected {expected} release platforms",
            )

        seen: set[str] = set()
        for task, _ in resolved:
            if task.variant in seen:
                raise ReconciliationError(
                    "count sign tasks", f"more than one sign task for variant '{task.variant}'"
                )
            seen.add(task.variant)

        return resolved

    def reconcile(self, commit: str) -> list[ResolvedSignTask]:
        """
        Run all five steps and return every sign task with its artifacts.

        Raises:
            ReconciliationError: Any matrix or artifact-count mismatch.
            NetworkError: A CI query failed.
        """
        results: list[ResolvedSignTask] = []
        for task, platform in self.sign_tasks(commit):
            artifacts = self._ci.get_artifacts_for_task(task.task_id)
            expected = platform.artifact_extensions()
            if len(artifacts) != len(expected):
                raise ReconciliationError(
                    f"get artifacts for {task.variant}",
                    f"expected {len(expected)} artifacts but found {len(artifacts)}",
                )
            results.append(ResolvedSignTask(task=task, platform=platform, artifacts=tuple(artifacts)))
            _logger.info(
                "Sign task reconciled",
                extra={
                    "variant": task.variant,
                    "task_id": task.task_id,
                    "artifacts": [a.url for a in artifacts],
                },
            )

        _logger.info("Reconciliation complete", extra={"commit": commit, "platforms": len(results)})
        return results
