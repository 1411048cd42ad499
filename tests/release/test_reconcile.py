# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for sign-task reconciliation.

Every failure mode must stop the run before a single artifact is fetched or
uploaded.
"""

import pytest

from toolsrelease.ci.evergreen import Artifact, Task
from toolsrelease.errors import ReconciliationError
from toolsrelease.platforms.matrix import DEFAULT_PLATFORMS, Platform, PlatformMatrix
from toolsrelease.release.reconcile import TaskReconciler


class FakeCI:
    def __init__(self, tasks: list[Task], artifacts: dict[str, list[Artifact]]) -> None:
        self.tasks = tasks
        self.artifacts = artifacts
        self.artifact_requests: list[str] = []

    def get_tasks_for_revision(self, commit: str) -> list[Task]:
        return list(self.tasks)

    def get_artifacts_for_task(self, task_id: str) -> list[Artifact]:
        self.artifact_requests.append(task_id)
        return self.artifacts.get(task_id, [])


def _sign_task(platform: Platform) -> Task:
    return Task(task_id=f"sign_{platform.variant}", variant=platform.variant, display_name="sign")


def _artifacts_for(platform: Platform) -> list[Artifact]:
    return [
        Artifact(f"https://ci.example.com/{platform.variant}/release{ext}")
        for ext in platform.artifact_extensions()
    ]


@pytest.fixture()
def matrix() -> PlatformMatrix:
    return PlatformMatrix(DEFAULT_PLATFORMS[:12])


@pytest.fixture()
def complete_ci(matrix: PlatformMatrix) -> FakeCI:
    tasks = [_sign_task(p) for p in matrix]
    artifacts = {f"sign_{p.variant}": _artifacts_for(p) for p in matrix}
    return FakeCI(tasks, artifacts)


def test_complete_matrix_reconciles(matrix: PlatformMatrix, complete_ci: FakeCI) -> None:
    resolved = TaskReconciler(complete_ci, matrix).reconcile("abc123")

    assert len(resolved) == 12
    for item in resolved:
        assert item.platform.variant == item.task.variant
        assert len(item.artifacts) == len(item.platform.artifact_extensions())


def test_patch_and_non_sign_tasks_are_ignored(matrix: PlatformMatrix, complete_ci: FakeCI) -> None:
    first = next(iter(matrix))
    complete_ci.tasks.extend(
        [
            Task("patch_sign", first.variant, "sign", requester="patch_request"),
            Task("pr_sign", first.variant, "sign", requester="github_pull_request"),
            Task("compile", first.variant, "compile"),
            Task("dist", "unknown-variant", "dist"),
        ]
    )
    resolved = TaskReconciler(complete_ci, matrix).reconcile("abc123")
    assert {r.task.task_id for r in resolved} == {f"sign_{p.variant}" for p in matrix}


def test_missing_sign_task_fetches_nothing(matrix: PlatformMatrix, complete_ci: FakeCI) -> None:
    complete_ci.tasks.pop()

    with pytest.raises(ReconciliationError, match="found 11 sign tasks, but expected 12"):
        TaskReconciler(complete_ci, matrix).reconcile("abc123")
    assert complete_ci.artifact_requests == []


def test_unknown_variant_is_fatal_even_when_counts_match(
    matrix: PlatformMatrix, complete_ci: FakeCI
) -> None:
    complete_ci.tasks[-1] = Task("sign_mystery", "solaris11", "sign")

    with pytest.raises(ReconciliationError, match="unknown variant 'solaris11'"):
        TaskReconciler(complete_ci, matrix).reconcile("abc123")
    assert complete_ci.artifact_requests == []


def test_duplicate_variant_is_fatal(matrix: PlatformMatrix, complete_ci: FakeCI) -> None:
    platforms = list(matrix)
    complete_ci.tasks[-1] = Task("sign_dup", platforms[0].variant, "sign")

    with pytest.raises(ReconciliationError, match="more than one sign task"):
        TaskReconciler(complete_ci, matrix).reconcile("abc123")
    assert complete_ci.artifact_requests == []


def test_artifact_count_mismatch_is_fatal(matrix: PlatformMatrix, complete_ci: FakeCI) -> None:
    rpm_platform = matrix.get_by_variant("rhel70")
    assert rpm_platform is not None
    complete_ci.artifacts["sign_rhel70"] = complete_ci.artifacts["sign_rhel70"][:1]

    with pytest.raises(ReconciliationError, match="expected 2 artifacts but found 1"):
        TaskReconciler(complete_ci, matrix).reconcile("abc123")


def test_sign_tasks_pairs_tasks_with_platforms(matrix: PlatformMatrix, complete_ci: FakeCI) -> None:
    pairs = TaskReconciler(complete_ci, matrix).sign_tasks("abc123")
    assert all(matrix.get_by_variant(task.variant) == platform for task, platform in pairs)
    assert complete_ci.artifact_requests == []
