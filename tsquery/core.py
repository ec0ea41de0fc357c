"""Core data model shared by the dispatcher, normalizer and pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

PROMETHEUS = "prometheus"
CLICKHOUSE = "clickhouse"
BACKENDS: Tuple[str, ...] = (PROMETHEUS, CLICKHOUSE)

Point = Tuple[int, float]


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Closed interval of instants in milliseconds since epoch."""

    start: int
    end: int

    @property
    def start_seconds(self) -> int:
        return self.start // 1000

    @property
    def end_seconds(self) -> int:
        return self.end // 1000

    @property
    def duration_ms(self) -> int:
        return self.end - self.start


@dataclass(slots=True)
class LabeledSamples:
    labels: Dict[str, str]
    samples: List[Tuple[Any, Any]] = field(default_factory=list)


@dataclass(slots=True)
class LabelVectorResult:
    """Range-query result from the label-vector backend."""

    series: List[LabeledSamples] = field(default_factory=list)
    backend: str = PROMETHEUS

    @classmethod
    def from_payload(cls, payload: Any) -> "LabelVectorResult":
        """Build from ``{data: {result: [{metric, values}]}}``, ignoring malformed entries."""
        data = payload.get("data") if isinstance(payload, dict) else None
        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, list):
            return cls()
        series: List[LabeledSamples] = []
        for entry in result:
            if not isinstance(entry, dict):
                continue
            metric = entry.get("metric")
            labels = {str(k): str(v) for k, v in metric.items()} if isinstance(metric, dict) else {}
            values = entry.get("values")
            samples: List[Tuple[Any, Any]] = []
            if isinstance(values, list):
                samples = [tuple(item) for item in values if isinstance(item, (list, tuple)) and len(item) == 2]
            series.append(LabeledSamples(labels=labels, samples=samples))
        return cls(series=series)


@dataclass(slots=True)
class TabularResult:
    """Row-oriented result from the SQL backend."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    backend: str = CLICKHOUSE

    @classmethod
    def from_payload(cls, payload: Any) -> "TabularResult":
        """Accept either a bare row array or ``{data: [...]}``."""
        if isinstance(payload, list):
            rows = payload
        elif isinstance(payload, dict) and isinstance(payload.get("data"), list):
            rows = payload["data"]
        else:
            rows = []
        return cls(rows=[row for row in rows if isinstance(row, dict)])


RawQueryResult = Union[LabelVectorResult, TabularResult]


@dataclass(frozen=True, slots=True)
class Series:
    """A named sequence of points sorted ascending by instant."""

    name: str
    points: Tuple[Point, ...] = ()

    def as_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "points": [[ts, value] for ts, value in self.points]}


@dataclass(frozen=True, slots=True)
class LegendStat:
    mean: Optional[float] = None
    max: Optional[float] = None
    last: Optional[float] = None

    def as_dict(self) -> Dict[str, Optional[float]]:
        return {"mean": self.mean, "max": self.max, "last": self.last}


@dataclass(frozen=True, slots=True)
class ChartState:
    """Everything a renderer needs for one published run."""

    title: str = ""
    series: Tuple[Series, ...] = ()
    stats: Mapping[str, LegendStat] = field(default_factory=dict)
    error: Optional[str] = None
    error_type: Optional[str] = None
    generation: int = 0

    @classmethod
    def failure(cls, message: str, generation: int = 0, error_type: Optional[str] = None) -> "ChartState":
        return cls(title=f"Error: {message}", error=message, error_type=error_type, generation=generation)

    @property
    def ok(self) -> bool:
        return self.error is None


def build_series(groups: Mapping[str, Sequence[Point]]) -> List[Series]:
    """Freeze accumulated groups into ``Series`` with points sorted by instant."""
    return [
        Series(name=name, points=tuple(sorted(points, key=lambda point: point[0])))
        for name, points in groups.items()
    ]
