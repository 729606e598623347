"""
incident_aggregator.py — Fold raw Chicago incident rows into ranked tables.

Pure transform: no I/O, no caching, input is never mutated. Running it twice
over the same rows yields identical output.

Per dataset, one pass over the rows:
  1. validate the row (ShotRecord / ViolenceRecord); invalid rows are skipped
  2. normalise its date (dates.format_date) and widen the (earliest, latest) pair
  3. add the row's value for every tracked Dimension to that dimension's table;
     a missing value only skips that one table
  4. rank each table by count, descending

Tables are selected by Dimension member, never by name.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from stacc.models.chicago import (
    AggregatedSummary,
    ChicagoMapData,
    ChicagoSummary,
    MapPoint,
    ShotRecord,
    ViolenceRecord,
)
from stacc.services.dates import format_date
from stacc.services.iucr_codes import describe_iucr

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class Dimension(str, Enum):
    """A categorical field incident rows are tallied on. Values are the table keys."""

    AGE = "ages"
    BLOCK = "blocks"
    COMMUNITY_AREA = "community_areas"
    GUNSHOT_INJURY = "gun_injury_count"
    INCIDENT_TYPE = "incident_types"
    LOCATION_DESCRIPTION = "location_descriptions"
    RACE = "victim_races"
    ROUNDS = "rounds"
    SEX = "victim_sexes"
    ZIP_CODE = "zip_codes"


class FrequencyTable:
    """Label → occurrence count."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def add(self, label: Optional[str]) -> bool:
        """Count one occurrence of *label*. Empty labels are ignored; returns whether it counted."""
        if label is None or not label.strip():
            return False
        self._counts[label] = self._counts.get(label, 0) + 1
        return True

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def ranked(self) -> list[tuple[str, int]]:
        """(label, count) pairs, most common first. Ties keep first-seen order."""
        return sorted(self._counts.items(), key=lambda item: item[1], reverse=True)


def _block(record: ShotRecord) -> Optional[str]:
    # Socrata block names carry trailing commas ("100 N STATE ST,")
    return record.block.rstrip(",") if record.block else None


def _violence_type(record: ViolenceRecord) -> Optional[str]:
    # A missing code is a missing value; only a present but unlisted code is "UNKNOWN"
    if not record.incident_iucr_cd or not record.incident_iucr_cd.strip():
        return None
    return describe_iucr(record.incident_iucr_cd)


SHOT_DIMENSIONS: dict[Dimension, Callable[[ShotRecord], Optional[str]]] = {
    Dimension.BLOCK: _block,
    Dimension.COMMUNITY_AREA: lambda r: r.community_area,
    Dimension.INCIDENT_TYPE: lambda r: r.incident_type_description,
    Dimension.ROUNDS: lambda r: r.rounds,
    Dimension.ZIP_CODE: lambda r: r.zip_code,
}

VIOLENCE_DIMENSIONS: dict[Dimension, Callable[[ViolenceRecord], Optional[str]]] = {
    Dimension.AGE: lambda r: r.age,
    Dimension.COMMUNITY_AREA: lambda r: r.community_area,
    Dimension.GUNSHOT_INJURY: lambda r: r.gunshot_injury_i,
    Dimension.INCIDENT_TYPE: _violence_type,
    Dimension.LOCATION_DESCRIPTION: lambda r: r.location_description,
    Dimension.RACE: lambda r: r.race,
    Dimension.SEX: lambda r: r.sex,
    Dimension.ZIP_CODE: lambda r: r.zip_code,
}


@dataclass
class _Fold:
    """Running state for one aggregation pass."""

    dimensions: Iterable[Dimension]
    tables: dict[Dimension, FrequencyTable] = field(init=False)
    earliest: str = ""
    latest: str = ""
    record_count: int = 0
    skipped_count: int = 0
    points: list[MapPoint] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.tables = {dim: FrequencyTable() for dim in self.dimensions}

    def widen(self, date: str) -> None:
        if not self.earliest or date < self.earliest:
            self.earliest = date
        if not self.latest or date > self.latest:
            self.latest = date

    def summary(self) -> AggregatedSummary:
        return AggregatedSummary(
            tables={dim.value: table.ranked() for dim, table in self.tables.items()},
            time_range=(self.earliest, self.latest),
            record_count=self.record_count,
            skipped_count=self.skipped_count,
            points=self.points,
        )


def _aggregate(
    rows: Iterable[Any],
    model: Type[RecordT],
    dimensions: dict[Dimension, Callable[[RecordT], Optional[str]]],
    kind: str,
) -> AggregatedSummary:
    fold = _Fold(dimensions=dimensions.keys())

    for row in rows:
        try:
            record = model.model_validate(row)
        except ValidationError:
            fold.skipped_count += 1
            continue

        fold.record_count += 1
        date = format_date(record.date)
        fold.widen(date)

        for dim, extract in dimensions.items():
            fold.tables[dim].add(extract(record))

        lon_lat = record.location.lon_lat if record.location else None
        if lon_lat is not None:
            label = dimensions[Dimension.INCIDENT_TYPE](record) or kind
            fold.points.append(
                MapPoint(lat=lon_lat[1], lon=lon_lat[0], label=label.lower(), kind=kind, date=date)
            )

    if fold.skipped_count:
        logger.debug("Skipped %d malformed %s rows", fold.skipped_count, kind)

    return fold.summary()


def aggregate_shotspotter(rows: Iterable[Any]) -> AggregatedSummary:
    """Summarise ShotSpotter alert rows."""
    return _aggregate(rows, ShotRecord, SHOT_DIMENSIONS, "shotspotter")


def aggregate_violence(rows: Iterable[Any]) -> AggregatedSummary:
    """Summarise victims-of-violence rows."""
    return _aggregate(rows, ViolenceRecord, VIOLENCE_DIMENSIONS, "violence")


def summarize(map_data: ChicagoMapData) -> ChicagoSummary:
    return ChicagoSummary(
        shotspotter=aggregate_shotspotter(map_data.shotspotter_data),
        violence=aggregate_violence(map_data.violence_data),
    )
