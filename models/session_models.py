"""Session domain models for link visit tracking."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class GeoResult:
	"""Geolocation of a visitor IP; every field falls back to ``UNKNOWN``."""

	city: Any = UNKNOWN
	region: Any = UNKNOWN
	country: Any = UNKNOWN
	zip_code: Any = UNKNOWN
	latitude: Any = UNKNOWN
	longitude: Any = UNKNOWN
	timezone: Any = UNKNOWN
	isp: Any = UNKNOWN
	org: Any = UNKNOWN
	asn: Any = UNKNOWN
	resolved: bool = False

	@classmethod
	def unknown(cls) -> "GeoResult":
		return cls()

	def location(self) -> str:
		"""Return a ``city, region, country`` string or ``UNKNOWN``."""
		if not self.resolved:
			return UNKNOWN
		return f"{self.city}, {self.region}, {self.country}"


@dataclass(frozen=True)
class Visit:
	"""One recorded open of a tracking link."""

	ip: str
	user_agent: str = UNKNOWN
	referer: str = "Direct"
	accept_language: str = UNKNOWN
	accept_encoding: str = UNKNOWN
	geo: GeoResult = field(default_factory=GeoResult.unknown)
	timestamp: float = field(default_factory=lambda: time.time())
	enrichment: Optional[Dict[str, Any]] = None

	def to_dict(self) -> Dict[str, Any]:
		data = asdict(self)
		data["location"] = self.geo.location()
		return data


@dataclass
class SessionSummary:
	"""Listing view of a session without its visit log."""

	session_id: str
	label: str
	visit_count: int
	created_at: float
	message: str


@dataclass
class TrackingSession:
	"""In-memory state for a registered tracking link."""

	session_id: str
	label: str
	notify_url: Optional[str]
	message: str
	metadata: Dict[str, Any] = field(default_factory=dict)
	created_at: float = field(default_factory=lambda: time.time())
	visits: List[Visit] = field(default_factory=list)
	visit_count: int = 0

	def summary(self) -> SessionSummary:
		return SessionSummary(
			session_id=self.session_id,
			label=self.label,
			visit_count=self.visit_count,
			created_at=self.created_at,
			message=self.message,
		)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"session_id": self.session_id,
			"label": self.label,
			"notify_url": self.notify_url,
			"message": self.message,
			"metadata": self.metadata,
			"created_at": self.created_at,
			"visit_count": self.visit_count,
			"visits": [visit.to_dict() for visit in self.visits],
		}
