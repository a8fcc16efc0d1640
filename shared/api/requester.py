"""Resolve the acting user of an API request."""

from __future__ import annotations

from shared.domain.value_objects import Requester


def requester_from_request(request) -> Requester:  # type: ignore
    user = request.user
    is_admin = bool(
        getattr(user, "is_staff", False)
        or getattr(user, "is_superuser", False)
        or (hasattr(user, "is_platform_admin") and user.is_platform_admin())
    )
    return Requester(user_id=user.pk, is_admin=is_admin)
