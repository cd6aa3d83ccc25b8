"""Panic button policy constants."""

from __future__ import annotations

# Accuracy (meters) above which the location is flagged as degraded
DEGRADED_ACCURACY_METERS = 1000

# Status text thresholds (meters)
ACCURATE_GPS_METERS = 50
STANDARD_GPS_METERS = 200

# Key-value store keys
LAST_ALERT_KEY = "last_panic_alert"
USER_LOCATION_KEY = "user_location"
ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
EXPIRES_AT_KEY = "expires_at"

# Geolocation error codes reported by position sources
PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3
