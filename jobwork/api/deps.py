"""
Shared route dependencies.
"""
from typing import Optional

from fastapi import Request

from jobwork.storage import Storage


def get_storage(request: Request) -> Storage:
    """Storage backend built at startup."""
    return request.app.state.storage


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
