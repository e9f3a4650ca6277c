"""Core data models shared by the location resolution engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


class BusinessType(str, enum.Enum):
    RESTAURANT = "restaurant"
    CAFE = "cafe"
    BAR = "bar"
    RETAIL = "retail"
    HOTEL = "hotel"
    GYM = "gym"
    SALON = "salon"
    CLINIC = "clinic"
    OFFICE = "office"
    WAREHOUSE = "warehouse"
    GAS_STATION = "gas_station"
    GROCERY = "grocery"
    PHARMACY = "pharmacy"
    HEALTHCARE = "healthcare"
    FINANCIAL = "financial"
    FITNESS = "fitness"
    AUTOMOTIVE = "automotive"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> "BusinessType":
        """Lenient conversion used when reading persisted entries."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


_DISPLAY_NAMES = {
    BusinessType.RESTAURANT: "Restaurant",
    BusinessType.CAFE: "Cafe",
    BusinessType.BAR: "Bar",
    BusinessType.RETAIL: "Retail Store",
    BusinessType.HOTEL: "Hotel",
    BusinessType.GYM: "Gym/Fitness",
    BusinessType.SALON: "Salon/Spa",
    BusinessType.CLINIC: "Medical Clinic",
    BusinessType.OFFICE: "Office",
    BusinessType.WAREHOUSE: "Warehouse",
    BusinessType.GAS_STATION: "Gas Station",
    BusinessType.GROCERY: "Grocery",
    BusinessType.PHARMACY: "Pharmacy",
    BusinessType.HEALTHCARE: "Healthcare",
    BusinessType.FINANCIAL: "Bank/ATM",
    BusinessType.FITNESS: "Fitness",
    BusinessType.AUTOMOTIVE: "Automotive",
    BusinessType.OTHER: "Other Business",
}


class ConfidenceTier(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecordStatus(str, enum.Enum):
    REPORTED = "reported"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class BusinessCandidate:
    """Normalized snapshot of a business returned by the places directory."""

    place_id: str
    name: str
    lat: float
    lng: float
    address: Optional[str] = None
    distance_m: float = 0.0
    business_type: BusinessType = BusinessType.OTHER
    rating: Optional[float] = None
    price_level: Optional[int] = None
    is_open: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "place_id": self.place_id,
            "name": self.name,
            "address": self.address,
            "lat": self.lat,
            "lng": self.lng,
            "distance_m": round(self.distance_m, 1),
            "business_type": self.business_type.value,
            "rating": self.rating,
            "price_level": self.price_level,
            "is_open": self.is_open,
        }


@dataclass(frozen=True, slots=True)
class PlaceDetail:
    place_id: str
    name: str
    lat: float
    lng: float
    address: str
    cached_at: datetime
    types: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "place_id": self.place_id,
            "name": self.name,
            "lat": self.lat,
            "lng": self.lng,
            "address": self.address,
            "cached_at": self.cached_at.isoformat(),
            "types": list(self.types),
        }


@dataclass(frozen=True, slots=True)
class FingerprintEntry:
    fingerprint: str
    business_id: str
    business_name: str
    business_type: BusinessType
    confidence: float
    last_used: datetime
    use_count: int = 1


@dataclass(frozen=True, slots=True)
class Position:
    """A single sensor fix."""

    lat: float
    lng: float
    accuracy_m: float
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class DetectionContext:
    lat: float
    lng: float
    accuracy_m: float
    timestamp: datetime
    fingerprint: Optional[str] = None
    candidates: Tuple[BusinessCandidate, ...] = ()
    suggested: Optional[BusinessCandidate] = None
    confidence_tier: Optional[ConfidenceTier] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "accuracy_m": self.accuracy_m,
            "timestamp": self.timestamp.isoformat(),
            "fingerprint": self.fingerprint,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "suggested": self.suggested.to_dict() if self.suggested else None,
            "confidence_tier": self.confidence_tier.value if self.confidence_tier else None,
        }


@dataclass(frozen=True, slots=True)
class LocationEntry:
    """One known location in the catalog built from historical records."""

    id: str
    name: str
    address: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    business_type: BusinessType = BusinessType.OTHER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "lat": self.lat,
            "lng": self.lng,
            "business_type": self.business_type.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocationEntry":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            address=data.get("address") or "",
            lat=data.get("lat"),
            lng=data.get("lng"),
            business_type=BusinessType.parse(data.get("business_type")),
        )


@dataclass(slots=True)
class MaintenanceRecord:
    """Read-only view of a historical maintenance record."""

    id: str
    business_id: str = ""
    location_id: str = ""
    status: RecordStatus = RecordStatus.REPORTED
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    title: Optional[str] = None
    raw_snapshot: Optional[Dict[str, Any]] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MaintenanceRecord":
        status_raw = data.get("status") or RecordStatus.REPORTED.value
        try:
            status = RecordStatus(status_raw)
        except ValueError:
            status = RecordStatus.REPORTED
        return cls(
            id=str(data.get("id") or ""),
            business_id=str(data.get("business_id") or ""),
            location_id=str(data.get("location_id") or ""),
            status=status,
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
            title=data.get("title"),
            raw_snapshot=data,
        )


@dataclass(frozen=True, slots=True)
class LocationStats:
    location_id: str
    open_count: int
    in_progress_count: int
    completed_count: int
    average_response: str
    health_score: int


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None
