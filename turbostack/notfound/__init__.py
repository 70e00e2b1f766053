"""404 logger: records missing-page hits and resolves the client address."""

from .client_ip import resolve_client_ip
from .store import Page404Hit, Page404Store, StoreUnavailable
