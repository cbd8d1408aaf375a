"""Tests for IP geolocation, the location cache and the location check."""

from __future__ import annotations

import pandas as pd
import pytest
import requests

from surveylink.detect.location import flag_location, reported_province
from surveylink.fetch.geolocation import (
    IPINFO_BATCH_URL,
    GeolocationUnavailable,
    IpinfoGeolocator,
    load_location_cache,
    merge_location_cache,
    resolve_ip_regions,
    write_location_cache,
)
from surveylink.schemas.quality_flags import INCON_PROVINCE


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: object = None,
        json_error: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.ok = status_code < 400
        self._payload = payload if payload is not None else {}
        self._json_error = json_error

    def json(self) -> object:
        if self._json_error is not None:
            raise self._json_error
        return self._payload


class FakeSession:
    """Records post() calls and replays a canned response or exception."""

    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.posts: list[dict] = []

    def post(self, url, params=None, json=None, timeout=None):
        self.posts.append({"url": url, "params": params, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


class TestIpinfoGeolocator:
    """Tests for the ipinfo.io batch client."""

    def test_batch_request_and_parse(self) -> None:
        session = FakeSession(
            FakeResponse(200, {"1.2.3.4/region": "Ontario", "5.6.7.8/region": ""})
        )
        geolocator = IpinfoGeolocator("secret", timeout=5.0, session=session)

        result = geolocator.lookup(["1.2.3.4", "5.6.7.8"])

        assert result == {"1.2.3.4": "Ontario", "5.6.7.8": None}
        post = session.posts[0]
        assert post["url"] == IPINFO_BATCH_URL
        assert post["params"] == {"token": "secret"}
        assert post["json"] == ["1.2.3.4/region", "5.6.7.8/region"]
        assert post["timeout"] == 5.0

    def test_empty_batch_makes_no_request(self) -> None:
        session = FakeSession(FakeResponse(200))
        assert IpinfoGeolocator("secret", session=session).lookup([]) == {}
        assert session.posts == []

    def test_rejected_token(self) -> None:
        session = FakeSession(FakeResponse(401))
        with pytest.raises(GeolocationUnavailable, match="rejected"):
            IpinfoGeolocator("bad", session=session).lookup(["1.2.3.4"])

    def test_server_error(self) -> None:
        session = FakeSession(FakeResponse(503))
        with pytest.raises(GeolocationUnavailable, match="503"):
            IpinfoGeolocator("secret", session=session).lookup(["1.2.3.4"])

    def test_connection_error(self) -> None:
        session = FakeSession(error=requests.ConnectionError("no route"))
        with pytest.raises(GeolocationUnavailable, match="request failed"):
            IpinfoGeolocator("secret", session=session).lookup(["1.2.3.4"])

    @pytest.mark.parametrize(
        "error",
        [
            requests.exceptions.ChunkedEncodingError("connection broken mid-body"),
            requests.TooManyRedirects("exceeded 30 redirects"),
            requests.exceptions.InvalidURL("bad url"),
        ],
    )
    def test_any_transport_failure(self, error) -> None:
        """Every requests failure surfaces as GeolocationUnavailable."""
        session = FakeSession(error=error)
        with pytest.raises(GeolocationUnavailable) as exc_info:
            IpinfoGeolocator("secret", session=session).lookup(["1.2.3.4"])
        assert exc_info.value.__cause__ is error

    def test_non_json_body(self) -> None:
        """A 200 carrying an HTML page (captive portal, proxy) is not a result."""
        body_error = requests.JSONDecodeError("Expecting value", "<html>maintenance</html>", 0)
        session = FakeSession(FakeResponse(200, json_error=body_error))
        with pytest.raises(GeolocationUnavailable, match="non-JSON"):
            IpinfoGeolocator("secret", session=session).lookup(["1.2.3.4"])

    def test_non_object_payload(self) -> None:
        session = FakeSession(FakeResponse(200, ["1.2.3.4/region", "Ontario"]))
        with pytest.raises(GeolocationUnavailable, match=r"unexpected payload \(list\)"):
            IpinfoGeolocator("secret", session=session).lookup(["1.2.3.4"])

    def test_from_env_requires_token(self, monkeypatch) -> None:
        monkeypatch.delenv("IPINFO_TOKEN", raising=False)
        with pytest.raises(GeolocationUnavailable, match="IPINFO_TOKEN"):
            IpinfoGeolocator.from_env()

    def test_from_env_reads_token(self, monkeypatch) -> None:
        monkeypatch.setenv("SURVEY_GEO_TOKEN", "abc123")
        geolocator = IpinfoGeolocator.from_env("SURVEY_GEO_TOKEN", timeout=2.0)
        assert geolocator.token == "abc123"
        assert geolocator.timeout == 2.0


class TestLocationCache:
    """Tests for the response_id -> region cache."""

    def test_missing_cache_is_empty(self, tmp_path) -> None:
        cache = load_location_cache(tmp_path / "cache.parquet")
        assert cache.empty
        assert list(cache.columns) == ["response_id", "region"]

    def test_merge_never_replaces(self) -> None:
        cache = pd.DataFrame({"response_id": ["R1"], "region": ["Ontario"]})
        merged = merge_location_cache(cache, {"R1": "Quebec", "R2": None})

        assert merged["response_id"].tolist() == ["R1", "R2"]
        assert merged["region"].iloc[0] == "Ontario"
        assert pd.isna(merged["region"].iloc[1])

    def test_round_trip(self, tmp_path) -> None:
        path = tmp_path / "cache.parquet"
        cache = merge_location_cache(load_location_cache(path), {"R2": "Quebec", "R1": None})
        write_location_cache(cache, path)

        loaded = load_location_cache(path)

        assert loaded["response_id"].tolist() == ["R1", "R2"]
        assert loaded["region"].iloc[1] == "Quebec"


class TestResolveIpRegions:
    """Tests for cache-first IP resolution."""

    def test_rerun_makes_no_calls(self, tmp_path, make_baseline, fake_geolocator) -> None:
        df = make_baseline(n_rows=3)
        path = tmp_path / "cache.parquet"
        geolocator = fake_geolocator()

        first, first_calls = resolve_ip_regions(df, geolocator, cache_path=path, verbose=False)
        second, second_calls = resolve_ip_regions(df, geolocator, cache_path=path, verbose=False)

        assert first_calls == 1
        assert second_calls == 0
        assert first == second
        assert len(geolocator.calls) == 1

    def test_missing_ip_not_requested(self, tmp_path, make_baseline, fake_geolocator) -> None:
        df = make_baseline(n_rows=2)
        df.loc[1, "ip_address"] = None
        geolocator = fake_geolocator()

        regions, _ = resolve_ip_regions(df, geolocator, cache_path=tmp_path / "c.parquet", verbose=False)

        assert geolocator.calls == [["10.0.0.0"]]
        assert set(regions) == {"R_base000"}

    def test_batches_split(self, tmp_path, make_baseline, fake_geolocator) -> None:
        geolocator = fake_geolocator()
        _, calls = resolve_ip_regions(
            make_baseline(n_rows=5),
            geolocator,
            cache_path=tmp_path / "c.parquet",
            batch_size=2,
            verbose=False,
        )

        assert calls == 3
        assert [len(batch) for batch in geolocator.calls] == [2, 2, 1]

    def test_unavailable_leaves_unresolved(self, tmp_path, make_baseline, fake_geolocator) -> None:
        path = tmp_path / "c.parquet"
        regions, calls = resolve_ip_regions(
            make_baseline(n_rows=3),
            fake_geolocator(unavailable=True),
            cache_path=path,
            verbose=False,
        )

        assert regions == {}
        assert calls == 1
        assert not path.exists()

    def test_malformed_service_body_leaves_unresolved(self, tmp_path, make_baseline) -> None:
        """A garbled answer from the live client degrades like an outage."""
        body_error = requests.JSONDecodeError("Expecting value", "<html></html>", 0)
        session = FakeSession(FakeResponse(200, json_error=body_error))
        path = tmp_path / "c.parquet"

        regions, calls = resolve_ip_regions(
            make_baseline(n_rows=3),
            IpinfoGeolocator("secret", session=session),
            cache_path=path,
            batch_size=2,
            verbose=False,
        )

        assert regions == {}
        assert calls == 1
        assert len(session.posts) == 1
        assert not path.exists()

    def test_no_geolocator_uses_cache_only(self, tmp_path, make_baseline) -> None:
        path = tmp_path / "c.parquet"
        write_location_cache(
            pd.DataFrame({"response_id": ["R_base000"], "region": ["Quebec"]}),
            path,
        )

        regions, calls = resolve_ip_regions(make_baseline(n_rows=2), None, cache_path=path, verbose=False)

        assert regions == {"R_base000": "Quebec"}
        assert calls == 0


class TestFlagLocation:
    """incon_province: 1 only when both values are present and differ."""

    def test_reported_province_names(self, make_baseline) -> None:
        df = make_baseline(n_rows=2)
        df.loc[1, "province"] = 11
        assert reported_province(df).tolist() == ["Ontario", "Quebec"]

    def test_match_and_mismatch(self, make_baseline) -> None:
        df = make_baseline(n_rows=2)
        regions = {"R_base000": "Ontario", "R_base001": "British Columbia"}

        result = flag_location(df, regions, verbose=False)

        assert result[INCON_PROVINCE].tolist() == [0, 1]

    def test_accents_and_case_ignored(self, make_baseline) -> None:
        df = make_baseline(n_rows=1)
        df["province"] = 11

        result = flag_location(df, {"R_base000": "QUÉBEC"}, verbose=False)

        assert result[INCON_PROVINCE].tolist() == [0]

    def test_unresolved_is_unknown(self, make_baseline) -> None:
        """A failed lookup is neither a pass nor a fail."""
        result = flag_location(make_baseline(n_rows=2), {"R_base000": "Ontario"}, verbose=False)

        assert result[INCON_PROVINCE].iloc[0] == 0
        assert pd.isna(result[INCON_PROVINCE].iloc[1])

    def test_missing_inputs_pass(self, make_baseline) -> None:
        df = make_baseline(n_rows=3)
        df.loc[0, "province"] = None
        df.loc[1, "ip_address"] = None
        regions = {"R_base000": "Quebec", "R_base002": None}

        result = flag_location(df, regions, verbose=False)

        assert result[INCON_PROVINCE].tolist() == [0, 0, 0]
