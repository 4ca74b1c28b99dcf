"""
Project Store

Project root documents plus whole-project operations: per-phase state blobs,
progress counters, cascading deletion and the aggregate read used by the
appraisal, extraction and manuscript phases.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import uuid4

from prismaflow.core.exceptions import DocumentNotFoundError, ProjectNotFoundError
from prismaflow.core.schemas import Project, ProjectAggregate, utcnow
from prismaflow.storage.document_store import DocumentStore, Precondition, SetDocument
from prismaflow.storage.paths import PROJECT_SUBCOLLECTIONS, PROJECTS, project_path, subcollection
from prismaflow.workflow.candidates import CandidateStore
from prismaflow.workflow.ledger import PrismaLedger

logger = logging.getLogger(__name__)


class ProjectStore:
    """CRUD for project root documents."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def create_project(
        self,
        user_id: str,
        name: str,
        description: str = "",
        template_used: str | None = None,
        phases: dict[str, Any] | None = None,
        project_id: str | None = None,
    ) -> Project:
        """Create a project owned by ``user_id``."""
        now = utcnow()
        project = Project(
            id=project_id or uuid4().hex,
            user_id=user_id,
            name=name,
            description=description,
            template_used=template_used,
            phases=phases or {},
            created_at=now,
            updated_at=now,
        )
        await self._store.set(project_path(project.id), project.model_dump(mode="json"))
        logger.info("Created project %s for user %s", project.id, user_id)
        return project

    async def _read(self, project_id: str) -> dict[str, Any]:
        raw = await self._store.get(project_path(project_id))
        if raw is None:
            raise ProjectNotFoundError(project_id)
        return raw

    async def get_project(self, project_id: str) -> Project:
        """
        Raises:
            ProjectNotFoundError: No such project.
        """
        return Project.model_validate(await self._read(project_id))

    async def list_user_projects(self, user_id: str) -> list[Project]:
        """Projects of a user, most recently updated first."""
        projects = [
            Project.model_validate(data)
            for _, data in await self._store.list_collection(PROJECTS)
            if data.get("user_id") == user_id
        ]
        return sorted(projects, key=lambda p: p.updated_at, reverse=True)

    async def _merge(
        self, project_id: str, fields: dict[str, Any], expected: dict[str, Any] | None = None
    ) -> None:
        path = project_path(project_id)
        fields = {**fields, "updated_at": utcnow().isoformat()}
        try:
            await self._store.commit(
                [Precondition(path, expected or {}), SetDocument(path, fields, merge=True)]
            )
        except DocumentNotFoundError as e:
            raise ProjectNotFoundError(project_id) from e

    async def touch(self, project_id: str) -> None:
        """Bump ``updated_at``."""
        await self._merge(project_id, {})

    async def update_phase(self, project_id: str, phase: str, data: dict[str, Any]) -> Project:
        """
        Store the state blob of one phase.

        Raises:
            ProjectNotFoundError: No such project.
            ConcurrentModificationError: Another write landed since the read.
        """
        raw = await self._read(project_id)
        phases = {**(raw.get("phases") or {}), phase: data}
        await self._merge(
            project_id, {"phases": phases}, expected={"updated_at": raw.get("updated_at")}
        )
        return await self.get_project(project_id)

    async def set_progress(self, project_id: str, completed_tasks: int, total_tasks: int) -> None:
        await self._merge(
            project_id, {"completed_tasks": completed_tasks, "total_tasks": total_tasks}
        )

    async def delete_project(self, project_id: str) -> bool:
        """
        Delete a project with every sub-collection.

        Returns:
            True if the project existed.
        """
        existed = await self._store.get(project_path(project_id)) is not None
        counts = await asyncio.gather(
            *(
                self._store.delete_collection(subcollection(project_id, name))
                for name in PROJECT_SUBCOLLECTIONS
            )
        )
        await self._store.delete(project_path(project_id))
        logger.info(
            "Deleted project %s (%s)",
            project_id,
            ", ".join(f"{name}={count}" for name, count in zip(PROJECT_SUBCOLLECTIONS, counts)),
        )
        return existed

    async def aggregate(self, project_id: str) -> ProjectAggregate:
        """Project, counters, included studies and appraisals in one read."""
        candidates = CandidateStore(self._store)
        project, prisma, included, assessments = await asyncio.gather(
            self.get_project(project_id),
            PrismaLedger(self._store).get_counters(project_id),
            candidates.list_included(project_id),
            candidates.list_quality_assessments(project_id),
        )
        return ProjectAggregate(
            project=project,
            prisma=prisma,
            included_studies=included,
            quality_assessments=assessments,
        )
