"""External collaborators: capture exports and IP geolocation."""

from surveylink.fetch.captures import load_capture_streams, read_capture_csv
from surveylink.fetch.geolocation import (
    GeolocationUnavailable,
    Geolocator,
    IpinfoGeolocator,
    load_location_cache,
    resolve_ip_regions,
    write_location_cache,
)

__all__ = [
    "load_capture_streams",
    "read_capture_csv",
    "GeolocationUnavailable",
    "Geolocator",
    "IpinfoGeolocator",
    "load_location_cache",
    "write_location_cache",
    "resolve_ip_regions",
]
