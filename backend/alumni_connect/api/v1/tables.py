"""
Generic table API endpoints.

Row-oriented select/insert/update/delete keyed by table name, with filter
predicates and ordering in the query string. Every request is checked
against the table's row-level access rules.
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from alumni_connect.api.v1.auth import get_optional_user
from alumni_connect.core.constants import ACCESS_RULE_VIOLATION, UNIQUE_VIOLATION
from alumni_connect.db.session import get_db
from alumni_connect.models import AuthUser, Profile
from alumni_connect.services.access_rules import AccessDenied, Caller, TablePolicy, get_policy
from alumni_connect.services.query import (
    QueryError,
    clean_payload,
    parse_filters,
    parse_limit,
    parse_order,
    parse_select,
    row_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============== Helper Functions ==============


def _error(code: str, message: str) -> dict:
    return {"code": code, "message": message}


async def get_caller(
    identity: Optional[AuthUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> Caller:
    """Resolve the requesting identity and its profile for the access rules."""
    if identity is None:
        return Caller()
    profile = db.query(Profile).filter(Profile.user_id == identity.id).first()
    return Caller(identity=identity, profile=profile)


def _policy_or_404(table: str) -> TablePolicy:
    try:
        return get_policy(table)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error("42P01", f"Table '{table}' does not exist"),
        )


def _scoped_query(db: Session, policy: TablePolicy, caller: Caller, params: list):
    filters = parse_filters(policy.model, params)
    query = db.query(policy.model).filter(*filters)
    visibility = policy.visible(caller)
    if visibility is not None:
        query = query.filter(visibility)
    return query, filters


def _translate_failure(db: Session, table: str, exc: Exception) -> HTTPException:
    """Roll back and turn a rule, payload or constraint failure into an HTTP error."""
    db.rollback()

    if isinstance(exc, QueryError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_error(exc.code, str(exc)))

    if isinstance(exc, AccessDenied):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=_error(ACCESS_RULE_VIOLATION, str(exc)),
        )

    if "unique" in str(exc.orig).lower():
        logger.info("Duplicate row rejected on %s", table)
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_error(UNIQUE_VIOLATION, f"duplicate key value violates unique constraint on {table}"),
        )
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=_error("23502", f"Row violates a constraint on {table}"),
    )


# ============== API Endpoints ==============


@router.get("/{table}")
async def select_rows(
    table: str,
    request: Request,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Read the rows of a table visible to the caller."""
    policy = _policy_or_404(table)
    params = list(request.query_params.multi_items())

    try:
        query, _ = _scoped_query(db, policy, caller, params)
        ordering = parse_order(policy.model, request.query_params.get("order"))
        limit = parse_limit(request.query_params.get("limit"))
        columns = parse_select(policy.model, request.query_params.get("select"))
    except QueryError as exc:
        raise _translate_failure(db, table, exc) from exc

    if ordering:
        query = query.order_by(*ordering)
    if limit:
        query = query.limit(limit)

    return [row_to_dict(row, columns) for row in query.all()]


@router.post("/{table}", status_code=status.HTTP_201_CREATED)
async def insert_rows(
    table: str,
    payload: Union[dict, list[dict]] = Body(...),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Insert one row (JSON object) or several (JSON array); returns the stored rows."""
    policy = _policy_or_404(table)
    records = payload if isinstance(payload, list) else [payload]

    created = []
    try:
        if not records:
            raise QueryError("Nothing to insert", code="PGRST204")
        for record in records:
            values = clean_payload(policy.model, record)
            policy.check_insert(db, caller, values)
            row = policy.model(**values)
            db.add(row)
            db.flush()
            policy.after_insert(db, row)
            created.append(row)
        db.commit()
    except (QueryError, AccessDenied, IntegrityError) as exc:
        raise _translate_failure(db, table, exc) from exc

    return [row_to_dict(row) for row in created]


@router.patch("/{table}")
async def update_rows(
    table: str,
    request: Request,
    payload: dict = Body(...),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Update the visible rows matching the filters; returns the updated rows."""
    policy = _policy_or_404(table)
    params = list(request.query_params.multi_items())

    try:
        query, filters = _scoped_query(db, policy, caller, params)
        if not filters:
            raise QueryError("Updates require at least one filter")
        values = clean_payload(policy.model, payload)
        rows = query.all()
        for row in rows:
            policy.check_update(db, caller, row, values)
            for name, value in values.items():
                setattr(row, name, value)
        db.commit()
    except (QueryError, AccessDenied, IntegrityError) as exc:
        raise _translate_failure(db, table, exc) from exc

    return [row_to_dict(row) for row in rows]


@router.delete("/{table}")
async def delete_rows(
    table: str,
    request: Request,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Delete the visible rows matching the filters; returns what was deleted."""
    policy = _policy_or_404(table)
    params = list(request.query_params.multi_items())

    try:
        query, filters = _scoped_query(db, policy, caller, params)
        if not filters:
            raise QueryError("Deletes require at least one filter")
        rows = query.all()
        deleted = []
        for row in rows:
            policy.check_delete(db, caller, row)
            deleted.append(row_to_dict(row))
            policy.before_delete(db, row)
            db.delete(row)
            db.flush()
            policy.after_delete(db, row)
        db.commit()
    except (QueryError, AccessDenied, IntegrityError) as exc:
        raise _translate_failure(db, table, exc) from exc

    return deleted
