"""Request dependencies shared by routers."""
from fastapi import Header, Query

from app.core.errors import AuthenticationRequiredError, notification_error_to_http


def current_user_id(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    user_id: str | None = Query(None),
) -> str:
    """
    Owning user for the request. The auth layer in front of this service resolves the
    session and forwards the user id in X-User-Id (or ?user_id= for simple clients).
    """
    uid = (x_user_id or user_id or "").strip()
    if not uid:
        raise notification_error_to_http(AuthenticationRequiredError())
    return uid
