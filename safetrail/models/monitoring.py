from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from safetrail.models.alert import Alert
from safetrail.models.location import RouteWaypoint

@dataclass
class MonitoringState:
    is_active: bool = False
    last_activity_at: Optional[datetime] = None
    expected_route: Optional[List[RouteWaypoint]] = None
    recent_alerts: List[Alert] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_active": self.is_active,
            "last_activity_at": self.last_activity_at.isoformat() if self.last_activity_at else None,
            "expected_route": [
                {"latitude": wp.latitude, "longitude": wp.longitude}
                for wp in self.expected_route
            ] if self.expected_route is not None else None,
            "recent_alerts": [alert.to_dict() for alert in self.recent_alerts]
        }
