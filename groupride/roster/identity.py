from typing import Optional, Protocol


class Identity(Protocol):
    def current_user_id(self) -> Optional[str]: ...


class RequestIdentity:
    """Identity resolved from the request's bearer token (None when anonymous)."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self.user_id
