"""
Mapping from domain exceptions to HTTP errors
"""
from fastapi import HTTPException

from printshop.exceptions import StorefrontError


def http_error(exc: StorefrontError) -> HTTPException:
    """Build the HTTPException for a domain error using its status code"""
    return HTTPException(status_code=exc.status_code, detail=str(exc))
