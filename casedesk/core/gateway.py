import logging

from .capabilities import Action, can_perform
from .data_access import DataAccessor
from .exceptions import PermissionDenied
from .models import (
    Assign,
    Create,
    Delete,
    MutationRequest,
    Resource,
    Session,
    UpdateField,
)
from .store import ResourceStore

logger = logging.getLogger(__name__)


class MutationGateway:
    """Role-gated create/update/delete/assign with point reconciliation.

    The store is touched once per acknowledged mutation and never before the
    backend answered. Concurrent mutations on the same id are not serialized:
    the last response to arrive wins.
    """

    def __init__(self, accessor: DataAccessor, store: ResourceStore):
        self.accessor = accessor
        self.store = store

    @property
    def schema(self):
        return self.accessor.schema

    def required_action(self, request: MutationRequest) -> Action:
        if isinstance(request, Create):
            return Action.CREATE
        if isinstance(request, UpdateField):
            if request.field == self.schema.status_field:
                return Action.UPDATE_STATUS
            return Action.UPDATE_FIELD
        if isinstance(request, Delete):
            return Action.DELETE
        if isinstance(request, Assign):
            return Action.ASSIGN
        raise TypeError(f"Unknown mutation request: {request!r}")

    def check(self, request: MutationRequest, session: Session | None) -> None:
        action = self.required_action(request)
        resource = None
        if isinstance(request, Delete):
            resource = request.resource or self.store.get(request.id)
        elif isinstance(request, UpdateField):
            resource = self.store.get(request.id)
        allowed = session is not None and can_perform(
            session.role,
            action,
            session=session,
            resource=resource,
            author_field=self.schema.author_field,
        )
        if not allowed:
            role = session.role if session else None
            logger.info("Denied %s on %s for role %s", action.value, self.schema.name, role)
            raise PermissionDenied(
                f"Your role is not allowed to {action.value.replace('_', ' ')} {self.schema.name}"
            )

    async def perform(self, request: MutationRequest, session: Session | None) -> Resource | None:
        """
        Run a mutation on behalf of `session` and reconcile the store.

        Returns:
            The created or updated record, None for deletions

        Raises:
            PermissionDenied: The session may not perform it; no request was sent
            RequestError: The backend rejected it or could not be reached
        """
        self.check(request, session)
        if isinstance(request, Create):
            created = await self.accessor.create(request.payload)
            self.store.upsert_one(created)
            return created
        if isinstance(request, UpdateField):
            updated = await self.accessor.update_fields(request.id, {request.field: request.value})
            if not isinstance(updated, dict):
                # acknowledgement without a body
                updated = {request.field: request.value}
            self.store.patch_one(request.id, updated)
            return updated
        if isinstance(request, Assign):
            updated = await self.accessor.assign(request.id, request.target_id)
            if isinstance(updated, dict):
                self.store.patch_one(request.id, updated)
            return updated
        await self.accessor.delete(request.id)
        self.store.remove_one(request.id)
        return None
