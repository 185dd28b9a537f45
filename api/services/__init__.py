"""
API Services Layer.

Database-backed operations behind the API endpoints.
"""

from api.services.auth import AuthService, user_to_dict

from api.services.jobs import JobService, job_to_dict, SLUG_ALLOCATION_ATTEMPTS

from api.services.search import (
    build_search_filters,
    resolve_sort,
    build_order_by,
    paginate,
    build_pagination,
)

__all__ = [
    # Auth
    "AuthService",
    "user_to_dict",
    # Jobs
    "JobService",
    "job_to_dict",
    "SLUG_ALLOCATION_ATTEMPTS",
    # Search
    "build_search_filters",
    "resolve_sort",
    "build_order_by",
    "paginate",
    "build_pagination",
]
