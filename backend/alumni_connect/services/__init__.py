from alumni_connect.services.access_rules import AccessDenied, Caller, POLICIES, get_policy
from alumni_connect.services.query import QueryError, clean_payload, parse_filters, row_to_dict

__all__ = [
    "AccessDenied",
    "Caller",
    "POLICIES",
    "get_policy",
    "QueryError",
    "clean_payload",
    "parse_filters",
    "row_to_dict",
]
