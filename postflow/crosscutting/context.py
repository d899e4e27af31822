"""
Name: Request Context

Responsibilities:
  - Carry per-request correlation data (request id, route, client, user)
    across sync handlers, thread-pool hops and async tasks
  - Expose it as log fields

Collaborators:
  - middleware.py: bind_request() / reset_context() around each request
  - identity/access_control.py: bind_user() once a bearer token is accepted
  - logger.py: current_context().as_log_fields()

Notes:
  - One ContextVar holding an immutable snapshot; binding returns a token
    so the middleware restores the previous value on exit
"""

from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass, replace


@dataclass(frozen=True)
class RequestContext:
    request_id: str = ""
    method: str = ""
    path: str = ""
    client_ip: str = ""
    user_id: str = ""

    def as_log_fields(self) -> dict:
        """R: Non-empty fields only."""
        return {key: value for key, value in asdict(self).items() if value}


_EMPTY = RequestContext()
_current: ContextVar[RequestContext] = ContextVar("postflow_request", default=_EMPTY)


def current_context() -> RequestContext:
    return _current.get()


def bind_request(
    request_id: str, method: str, path: str, client_ip: str = ""
) -> Token:
    return _current.set(
        RequestContext(
            request_id=request_id, method=method, path=path, client_ip=client_ip
        )
    )


def bind_user(user_id: str) -> None:
    """R: Attach the authenticated user to the active request context."""
    _current.set(replace(_current.get(), user_id=user_id))


def reset_context(token: Token) -> None:
    _current.reset(token)
