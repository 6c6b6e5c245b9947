"""JSON responses and HTTP status mapping for the admin API."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from pgflex.admin import NoRowsError

_CODE_STATUS = {
    "42710": HTTPStatus.CONFLICT,
    "23505": HTTPStatus.CONFLICT,
    "23503": HTTPStatus.BAD_REQUEST,
    "23502": HTTPStatus.BAD_REQUEST,
}


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out = {}
        for item in dataclasses.fields(value):
            attr = getattr(value, item.name)
            if item.metadata.get("omitempty") and (
                attr is None or (isinstance(attr, (str, list, dict)) and not attr)
            ):
                continue
            out[item.name] = _jsonable(attr)
        return out
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class Response:
    """An API response carrying either a result or an error message."""

    result: Any = None
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        """The JSON-ready body, leaving out an absent result or empty error."""
        body: dict[str, Any] = {}
        if self.result is not None:
            body["result"] = _jsonable(self.result)
        if self.error:
            body["error"] = self.error
        return body


def _error_chain(err: BaseException):
    seen = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__


def _sql_state(err: BaseException) -> str | None:
    for name in ("sqlstate", "pgcode"):
        code = getattr(err, name, None)
        if isinstance(code, str) and code:
            return code
    return None


def status_for_error(err: BaseException | None) -> int:
    """The HTTP status code an error is reported with."""
    if err is None:
        return HTTPStatus.OK
    chain = list(_error_chain(err))
    if any(isinstance(e, NoRowsError) for e in chain):
        return HTTPStatus.NOT_FOUND
    for e in chain:
        code = _sql_state(e)
        if code is not None:
            return _CODE_STATUS.get(code, HTTPStatus.INTERNAL_SERVER_ERROR)
    return HTTPStatus.INTERNAL_SERVER_ERROR


def error_body(err: BaseException) -> dict[str, str]:
    """The JSON body that reports an error."""
    return {"error": str(err)}