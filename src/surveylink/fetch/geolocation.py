"""Resolve baseline IP addresses to regions via the ipinfo.io batch API.

Lookups are keyed by the baseline response_id and cached in a local parquet
table. Identifiers already in the cache are never requested again, so a re-run
on unchanged input makes no external calls. The service answers per IP with a
region name or nothing; "nothing" is cached too.

When the token is rejected, the service cannot be reached, or it answers with
something other than a JSON object, the lookup raises GeolocationUnavailable.
resolve_ip_regions stops requesting, keeps whatever batches already succeeded,
and leaves the rest unresolved.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

import pandas as pd
import requests

from surveylink.config import location_cache_path
from surveylink.schemas.validate import require_columns, require_unique

IPINFO_BATCH_URL = "https://ipinfo.io/batch"

CACHE_FIELDS = ["response_id", "region"]

_DATASET_NAME = "location_cache"


class GeolocationUnavailable(RuntimeError):
    """The geolocation service rejected the token or could not be reached."""


@runtime_checkable
class Geolocator(Protocol):
    """Anything that maps a batch of IP addresses to region names."""

    def lookup(self, ips: Sequence[str]) -> dict[str, str | None]:
        ...


class IpinfoGeolocator:
    """Batch region lookup against ipinfo.io.

    Args:
        token: ipinfo.io access token
        timeout: Seconds before a request is abandoned
        session: Optional requests session (one is created if omitted)
    """

    def __init__(
        self,
        token: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls, env_var: str = "IPINFO_TOKEN", timeout: float = 30.0) -> IpinfoGeolocator:
        """Build a geolocator from a token stored in an environment variable.

        Raises:
            GeolocationUnavailable: If the variable is unset or empty
        """
        token = os.environ.get(env_var, "").strip()
        if not token:
            raise GeolocationUnavailable(f"No geolocation token in ${env_var}")
        return cls(token, timeout=timeout)

    def lookup(self, ips: Sequence[str]) -> dict[str, str | None]:
        """Look up the region of each IP in one batch request.

        Returns:
            Mapping of every requested IP to its region, or None when the
            service has no region for it

        Raises:
            GeolocationUnavailable: On any transport failure, a non-success
                HTTP status (401/403 mean the token was rejected), or a body
                that is not a JSON object
        """
        if not ips:
            return {}

        try:
            response = self.session.post(
                IPINFO_BATCH_URL,
                params={"token": self.token},
                json=[f"{ip}/region" for ip in ips],
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GeolocationUnavailable(f"ipinfo.io request failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise GeolocationUnavailable(f"ipinfo.io rejected the token (HTTP {response.status_code})")
        if not response.ok:
            raise GeolocationUnavailable(f"ipinfo.io returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GeolocationUnavailable(f"ipinfo.io returned a non-JSON body: {exc}") from exc
        if not isinstance(data, dict):
            raise GeolocationUnavailable(
                f"ipinfo.io returned an unexpected payload ({type(data).__name__})"
            )

        regions: dict[str, str | None] = {}
        for ip in ips:
            value = data.get(f"{ip}/region")
            regions[ip] = value.strip() if isinstance(value, str) and value.strip() else None
        return regions


def load_location_cache(path: Path | str | None = None) -> pd.DataFrame:
    """Read the location cache, or an empty table if none exists yet."""
    cache_path = Path(path) if path else location_cache_path()
    if not cache_path.exists():
        return pd.DataFrame(columns=CACHE_FIELDS)

    df = pd.read_parquet(cache_path)
    require_columns(df.columns, CACHE_FIELDS, dataset=_DATASET_NAME)
    require_unique(df, ["response_id"], dataset=_DATASET_NAME)
    return df[CACHE_FIELDS]


def merge_location_cache(cache: pd.DataFrame, fetched: dict[str, str | None]) -> pd.DataFrame:
    """Append newly fetched identifiers; existing entries are never replaced."""
    cached = set(cache["response_id"].astype(str))
    new_ids = [rid for rid in fetched if rid not in cached]
    if not new_ids:
        return cache

    additions = pd.DataFrame(
        {"response_id": new_ids, "region": [fetched[rid] for rid in new_ids]},
        columns=CACHE_FIELDS,
    )
    parts = [part for part in (cache, additions) if not part.empty]
    merged = pd.concat(parts, ignore_index=True)
    return merged.sort_values("response_id", kind="mergesort").reset_index(drop=True)


def write_location_cache(cache: pd.DataFrame, path: Path | str | None = None) -> Path:
    """Write the location cache to parquet (atomic)."""
    cache_path = Path(path) if path else location_cache_path()
    require_unique(cache, ["response_id"], dataset=_DATASET_NAME)

    cache_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = cache_path.with_suffix(".parquet.tmp")
    cache[CACHE_FIELDS].astype({"response_id": str}).to_parquet(tmp_path, index=False)
    tmp_path.rename(cache_path)
    return cache_path


def resolve_ip_regions(
    df: pd.DataFrame,
    geolocator: Geolocator | None,
    cache_path: Path | str | None = None,
    batch_size: int = 1000,
    verbose: bool = True,
) -> tuple[dict[str, str | None], int]:
    """Resolve every record's IP address to a region, using the cache first.

    Args:
        df: Records with response_id and ip_address columns
        geolocator: Lookup collaborator, or None to use the cache only
        cache_path: Location cache parquet (default: data/cache/ip_regions.parquet)
        batch_size: Maximum IPs per lookup call
        verbose: If True, print cache and lookup statistics

    Returns:
        Tuple of (response_id -> region or None for every resolved record,
        number of external lookup calls made)
    """
    require_columns(df.columns, ["response_id", "ip_address"], dataset="geolocation")

    cache = load_location_cache(cache_path)
    regions: dict[str, str | None] = {
        str(rid): (region if isinstance(region, str) else None)
        for rid, region in zip(cache["response_id"], cache["region"])
    }

    ids = df["response_id"].astype(str)
    pending = df.loc[df["ip_address"].notna() & ~ids.isin(list(regions)), ["response_id", "ip_address"]]
    pending = pending.assign(response_id=pending["response_id"].astype(str))

    if verbose:
        print(f"[geo] {len(regions)} cached, {len(pending)} to look up")

    if pending.empty or geolocator is None:
        if not pending.empty and verbose:
            print("[geo] WARNING: no geolocator configured, leaving uncached records unresolved")
        return regions, 0

    fetched: dict[str, str | None] = {}
    calls = 0
    for start in range(0, len(pending), batch_size):
        chunk = pending.iloc[start:start + batch_size]
        try:
            calls += 1
            answers = geolocator.lookup(list(dict.fromkeys(chunk["ip_address"])))
        except GeolocationUnavailable as exc:
            if verbose:
                print(f"[geo] WARNING: {exc}; {len(pending) - len(fetched)} records left unresolved")
            break
        for rid, ip in zip(chunk["response_id"], chunk["ip_address"]):
            fetched[rid] = answers.get(ip)

    if fetched:
        write_location_cache(merge_location_cache(cache, fetched), cache_path)
        regions.update(fetched)

    if verbose:
        print(f"[geo] resolved {len(fetched)} new records in {calls} calls")

    return regions, calls
