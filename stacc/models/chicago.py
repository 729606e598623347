"""
chicago.py — Pydantic models for the Chicago open-data proxy.

Raw records
───────────
Both datasets come from Socrata (data.cityofchicago.org) as JSON arrays of
loosely-typed objects. Socrata returns every scalar as a string, and omits
keys that are null for a row. Every categorical field is therefore
Optional; only `date` is required. A row that is not an object, has no
`date`, or carries a non-string where a string belongs fails validation and
is skipped by the aggregator.

  ShotSpotter alerts    https://dev.socrata.com/foundry/data.cityofchicago.org/3h7q-7mdb
  Victims of Homicides  https://dev.socrata.com/foundry/data.cityofchicago.org/gumc-mgzr
  and Non-Fatal Shootings

Summaries
─────────
AggregatedSummary is what the frontend renders: one ranked
(label, occurrences) table per dimension, the (earliest, latest) date pair,
and one MapPoint per record that had coordinates.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Location(BaseModel):
    """GeoJSON point; coordinates are [longitude, latitude]."""

    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    coordinates: list[float] = Field(default_factory=list)

    @property
    def lon_lat(self) -> Optional[tuple[float, float]]:
        if len(self.coordinates) < 2:
            return None
        return self.coordinates[0], self.coordinates[-1]


class ShotRecord(BaseModel):
    """One ShotSpotter alert."""

    model_config = ConfigDict(extra="ignore")

    date: str
    block: Optional[str] = None
    community_area: Optional[str] = None
    # "Single Gunshot", "Multiple Gunshots" or "Gunshot or Firecracker"
    incident_type_description: Optional[str] = None
    location: Optional[Location] = None
    rounds: Optional[str] = None
    zip_code: Optional[str] = None


class ViolenceRecord(BaseModel):
    """One victim of a homicide or non-fatal shooting."""

    model_config = ConfigDict(extra="ignore")

    date: str
    age: Optional[str] = None                 # "0-19", "20-29", ...
    community_area: Optional[str] = None
    gunshot_injury_i: Optional[str] = None    # "YES" | "NO"
    incident_iucr_cd: Optional[str] = None    # Illinois UCR code
    incident_primary: Optional[str] = None
    location: Optional[Location] = None
    location_description: Optional[str] = None
    race: Optional[str] = None                # "BLK", "WHI", "API", ...
    sex: Optional[str] = None                 # "M" | "F"
    victimization_fbi_cd: Optional[str] = None
    victimization_fbi_descr: Optional[str] = None
    zip_code: Optional[str] = None


class ChicagoMapData(BaseModel):
    """Unprocessed upstream arrays, as returned by GET /chiraq."""

    shotspotter_data: list[Any] = Field(default_factory=list)
    violence_data: list[Any] = Field(default_factory=list)


class MapPoint(BaseModel):
    """A single pin for the map widget."""

    lat: float
    lon: float
    label: str      # incident type, lower-cased
    kind: str       # "shotspotter" | "violence"
    date: str       # canonical display date


class AggregatedSummary(BaseModel):
    """Ranked frequency tables for one dataset."""

    tables: dict[str, list[tuple[str, int]]] = Field(default_factory=dict)
    time_range: tuple[str, str] = ("", "")
    record_count: int = 0
    skipped_count: int = 0
    points: list[MapPoint] = Field(default_factory=list)


class ChicagoSummary(BaseModel):
    """Response shape for GET /chiraq/summary."""

    shotspotter: AggregatedSummary
    violence: AggregatedSummary
