"""
Exception handling for the core module.

Every failure is scoped to one operation: a list fetch, a mutation or an
enrichment lookup. Nothing raised here is meant to stop the process.
"""

import logging

import sentry_sdk

logger = logging.getLogger(__name__)


class CasedeskException(Exception):
    """Base error carrying the backend status, a short title and a detail"""

    default_title = "Error"

    def __init__(
        self,
        detail: str | dict | None = None,
        *,
        status: int | None = None,
        title: str | None = None,
        event_id: str | None = None,
    ) -> None:
        self.status = status
        self.title = title or self.default_title
        self.detail = detail if detail is not None else self.title
        self.event_id = event_id
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if isinstance(self.detail, dict):
            return str(self.detail.get("msg") or self.title)
        return str(self.detail)


class FetchError(CasedeskException):
    """The list query failed; the view shows a page-level error"""

    default_title = "Failed to load"


class MutationError(CasedeskException):
    default_title = "Operation failed"


class PermissionDenied(MutationError):
    """The capability check failed; the backend was never contacted"""

    default_title = "Permission denied"


class RequestError(MutationError):
    """The backend rejected the mutation or could not be reached"""


class EnrichmentError(CasedeskException):
    """A geocoding lookup failed; always recovered into a fallback value"""

    default_title = "Lookup failed"


def error_detail(body, default: str) -> str:
    """Extract the `msg` of a backend error body `{msg: string}`"""
    if isinstance(body, dict) and isinstance(body.get("msg"), str) and body["msg"]:
        return body["msg"]
    return default


def handle_exception(
    status: int | None,
    title: str,
    detail: str | dict,
    resource_id: str | None = None,
    exc_class: type[CasedeskException] = RequestError,
):
    """Report the failure to Sentry when configured and raise it as `exc_class`."""
    event_id = None
    e = Exception(detail)
    if sentry_sdk.get_client().is_active():
        with sentry_sdk.new_scope() as scope:
            sentry_tags: dict = {
                "status": status,
                "title": title,
                "detail": detail,
            }
            if resource_id:
                sentry_tags["resource_id"] = resource_id
            scope.set_tags(sentry_tags)
            event_id = sentry_sdk.capture_exception(e)
    logger.warning("%s (status=%s): %s", title, status, detail)
    raise exc_class(detail, status=status, title=title, event_id=event_id)
