"""Value types shared by the client, executor and renderers."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from soraql.utils.constants import STATUS_COMPLETED, STATUS_EXPORTING, STATUS_FAILED, STATUS_RUNNING


@dataclass(frozen=True)
class Query:
    sql_text: str
    from_time: Optional[int] = None
    to_time: Optional[int] = None

    def payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"sql": self.sql_text}
        if self.from_time:
            body["from"] = self.from_time
        if self.to_time:
            body["to"] = self.to_time
        return body


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    type: str = ''
    database_type: str = ''

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ColumnInfo":
        return cls(
            name=str(data.get('name', '')),
            type=str(data.get('type') or ''),
            database_type=str(data.get('databaseType') or ''),
        )


class QueryStatus(Enum):
    SUBMITTED = 'SUBMITTED'
    RUNNING = STATUS_RUNNING
    EXPORTING = STATUS_EXPORTING
    COMPLETED = STATUS_COMPLETED
    FAILED = STATUS_FAILED
    UNKNOWN = 'UNKNOWN'

    @classmethod
    def parse(cls, raw: str) -> "QueryStatus":
        try:
            status = cls(raw)
        except ValueError:
            return cls.UNKNOWN
        return cls.UNKNOWN if status is cls.SUBMITTED else status

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (QueryStatus.COMPLETED, QueryStatus.FAILED)


_STATUS_RANK = {
    QueryStatus.SUBMITTED: 0,
    QueryStatus.UNKNOWN: 0,
    QueryStatus.RUNNING: 1,
    QueryStatus.EXPORTING: 2,
    QueryStatus.COMPLETED: 3,
    QueryStatus.FAILED: 3,
}


@dataclass(frozen=True)
class StatusResponse:
    status: str
    url: str = ''
    column_info: List[ColumnInfo] = field(default_factory=list)
    raw_body: str = ''

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], raw_body: str = '') -> "StatusResponse":
        columns = data.get('columnInfo') or []
        return cls(
            status=str(data.get('status') or ''),
            url=str(data.get('url') or ''),
            column_info=[ColumnInfo.from_dict(c) for c in columns if isinstance(c, Mapping)],
            raw_body=raw_body,
        )


@dataclass
class QueryHandle:
    """Remote query state as last observed by the poll loop."""
    query_id: str
    status: QueryStatus = QueryStatus.SUBMITTED
    raw_status: str = QueryStatus.SUBMITTED.value
    result_url: Optional[str] = None
    column_info: List[ColumnInfo] = field(default_factory=list)

    def update(self, response: StatusResponse) -> QueryStatus:
        """Apply a poll response; the status never moves backwards."""
        self.raw_status = response.status
        reported = QueryStatus.parse(response.status)
        if not self.status.is_terminal and reported.rank >= self.status.rank:
            self.status = reported
        if response.url:
            self.result_url = response.url
        if response.column_info:
            self.column_info = list(response.column_info)
        return reported


@dataclass(frozen=True)
class ResultTable:
    columns: Sequence[str]
    rows: Sequence[Mapping[str, Any]]

    def __post_init__(self):
        object.__setattr__(self, 'columns', tuple(self.columns))
        object.__setattr__(self, 'rows', tuple(self.rows))

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([dict(r) for r in self.rows], columns=list(self.columns))


@dataclass(frozen=True)
class TableColumn:
    name: str
    type: str = 'UNKNOWN'
    description: str = ''


@dataclass(frozen=True)
class AssistantResponse:
    id: str = ''
    sql_query: str = ''
    context: str = ''
    visualization: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AssistantResponse":
        vis = data.get('visualization')
        return cls(
            id=str(data.get('id') or ''),
            sql_query=str(data.get('sql_query') or ''),
            context=str(data.get('context') or ''),
            visualization=vis if isinstance(vis, dict) else None,
        )
