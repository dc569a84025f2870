from __future__ import annotations

import asyncio
import json
import threading

import httpx
import pytest

from conftest import FIXED_NOW, FakeWeatherSource, TimeController, make_observation, make_samples
from weatherdash.adapters.weather import ConfigError, OpenWeatherMapClient
from weatherdash.domain.models import LocationMatch
from weatherdash.service import (
    OPERATION_POLICIES,
    ErrorPolicy,
    LocationLookupError,
    Provenance,
    WeatherService,
    build_weather_service,
)
from weatherdash.storage import InMemoryKeyValueStore, TtlCache, cache_key
from weatherdash.synthetic import synthesize_current, synthesize_forecast

SEOUL = (37.5665, 126.9780)


class SlowWeatherSource(FakeWeatherSource):
    async def get_current(self, lat, lon):
        self.calls.append("current")
        await asyncio.sleep(0.01)
        return self.observation


def _service(source: FakeWeatherSource, cache: TtlCache) -> WeatherService:
    return WeatherService(source, cache, clock=lambda: FIXED_NOW)


def test_error_policies_are_named_per_operation():
    assert OPERATION_POLICIES["get_forecast"] is ErrorPolicy.FALLBACK
    assert OPERATION_POLICIES["search_locations"] is ErrorPolicy.FALLBACK
    assert OPERATION_POLICIES["get_location_by_coords"] is ErrorPolicy.RAISE


def test_search_without_credential_uses_mock_locations(cache):
    service = _service(FakeWeatherSource(error=ConfigError("missing key")), cache)

    matches = asyncio.run(service.search_locations("seoul"))

    assert [match.name for match in matches] == ["서울"]


def test_search_returns_remote_matches(cache):
    remote = LocationMatch(name="Seoul", country="KR", lat=37.56, lon=126.97)
    source = FakeWeatherSource(locations=[remote])

    matches = asyncio.run(_service(source, cache).search_locations("Seoul", 5))

    assert matches == [remote]


def test_blank_search_skips_the_source(cache):
    source = FakeWeatherSource()

    assert asyncio.run(_service(source, cache).search_locations("  ")) == []
    assert source.calls == []


def test_forecast_falls_back_to_synthetic_on_transport_error(cache, transport_error):
    service = _service(FakeWeatherSource(error=transport_error), cache)

    forecast = asyncio.run(service.get_forecast(*SEOUL))

    assert len(forecast.hourly) == 24
    assert len(forecast.daily) == 7
    assert forecast == synthesize_forecast(*SEOUL, now=FIXED_NOW)


def test_current_weather_provenance_moves_from_remote_to_cache(cache):
    source = FakeWeatherSource(observation=make_observation(temperature=21))
    service = _service(source, cache)

    first = asyncio.run(service.get_current_weather_result(*SEOUL))
    second = asyncio.run(service.get_current_weather_result(*SEOUL))

    assert first.provenance is Provenance.FROM_REMOTE
    assert second.provenance is Provenance.FROM_CACHE
    assert second.value == first.value
    assert second.value.temperature_c == 21
    assert source.calls == ["current"]


def test_synthesized_current_weather_is_cached(cache, transport_error):
    source = FakeWeatherSource(error=transport_error)
    service = _service(source, cache)

    first = asyncio.run(service.get_current_weather_result(*SEOUL))
    second = asyncio.run(service.get_current_weather_result(*SEOUL))

    assert first.provenance is Provenance.SYNTHESIZED
    assert first.value == synthesize_current(*SEOUL)
    assert second.provenance is Provenance.FROM_CACHE
    assert source.calls == ["current"]


def test_expired_entry_triggers_refetch(cache, clock: TimeController):
    source = FakeWeatherSource()
    service = _service(source, cache)

    asyncio.run(service.get_current_weather(*SEOUL))
    clock.advance(6 * 60 * 1000)
    result = asyncio.run(service.get_current_weather_result(*SEOUL))

    assert result.provenance is Provenance.FROM_REMOTE
    assert source.calls == ["current", "current"]


def test_forecast_ttl_outlives_current_ttl(cache, clock: TimeController):
    source = FakeWeatherSource()
    service = _service(source, cache)

    asyncio.run(service.get_forecast(*SEOUL))
    clock.advance(10 * 60 * 1000)
    result = asyncio.run(service.get_forecast_result(*SEOUL))

    assert result.provenance is Provenance.FROM_CACHE
    assert source.calls == ["forecast"]


def test_remote_forecast_is_interpolated(cache):
    service = _service(FakeWeatherSource(), cache)

    result = asyncio.run(service.get_forecast_result(*SEOUL))

    assert result.provenance is Provenance.FROM_REMOTE
    assert len(result.value.hourly) == 24
    assert result.value.hourly[0].timestamp == FIXED_NOW
    assert 1 <= len(result.value.daily) <= 7


def test_short_forecast_series_falls_back_to_synthetic(cache):
    service = _service(FakeWeatherSource(samples=make_samples(3)), cache)

    result = asyncio.run(service.get_forecast_result(*SEOUL))

    assert result.provenance is Provenance.SYNTHESIZED
    assert result.value == synthesize_forecast(*SEOUL, now=FIXED_NOW)


def test_cached_value_with_unexpected_shape_is_refetched(cache, store: InMemoryKeyValueStore):
    cache.set(cache_key("weather", *SEOUL), {"unexpected": True}, 60_000)
    source = FakeWeatherSource()

    result = asyncio.run(_service(source, cache).get_current_weather_result(*SEOUL))

    assert result.provenance is Provenance.FROM_REMOTE
    assert source.calls == ["current"]
    assert cache.get(cache_key("weather", *SEOUL))["temperature_c"] == 18


def test_concurrent_requests_share_one_remote_fetch(cache):
    source = SlowWeatherSource()
    service = _service(source, cache)

    async def scenario():
        return await asyncio.gather(
            service.get_current_weather_result(*SEOUL),
            service.get_current_weather_result(37.5701, 126.9803),
        )

    first, second = asyncio.run(scenario())

    assert source.calls == ["current"]
    assert {first.provenance, second.provenance} == {Provenance.FROM_REMOTE, Provenance.FROM_CACHE}
    assert cache.info().count == 1


def test_reverse_lookup_failure_raises(cache, transport_error):
    service = _service(FakeWeatherSource(error=transport_error), cache)

    with pytest.raises(LocationLookupError):
        asyncio.run(service.get_location_by_coords(*SEOUL))


def test_reverse_lookup_returns_first_match_or_none(cache):
    match = LocationMatch(name="Jongno-gu", country="KR", lat=37.57, lon=126.98)

    found = asyncio.run(
        _service(FakeWeatherSource(locations=[match]), cache).get_location_by_coords(*SEOUL)
    )
    missing = asyncio.run(_service(FakeWeatherSource(), cache).get_location_by_coords(0.0, 0.0))

    assert found == match
    assert missing is None


def test_cache_info_and_clear(cache, store: InMemoryKeyValueStore):
    store.set("theme", "dark")
    service = _service(FakeWeatherSource(), cache)
    asyncio.run(service.get_current_weather(*SEOUL))
    asyncio.run(service.get_forecast(*SEOUL))

    info = service.get_cache_info()
    assert info.count == 2
    assert info.total_size_bytes > 0

    assert service.clear_all_cache() == 2
    assert service.get_cache_info().count == 0
    assert store.keys() == ["theme"]


def test_build_weather_service_defaults(app_settings):
    service = build_weather_service(app_settings)

    assert isinstance(service.source, OpenWeatherMapClient)
    assert not service.source.has_credential
    assert service.cache.namespace == "weather-app-cache"

    result = asyncio.run(service.get_current_weather_result(*SEOUL))
    assert result.provenance is Provenance.SYNTHESIZED


def _owm_service(cache: TtlCache, handler) -> WeatherService:
    client = OpenWeatherMapClient(
        api_key="secret", base_url="https://owm.test", transport=httpx.MockTransport(handler)
    )
    return WeatherService(client, cache, clock=lambda: FIXED_NOW)


def _json_response(body: str) -> httpx.Response:
    return httpx.Response(200, content=body.encode(), headers={"content-type": "application/json"})


@pytest.mark.parametrize("literal", ["NaN", "Infinity"])
def test_non_finite_current_body_falls_back_to_synthetic(cache, literal):
    body = (
        '{"weather": [{"main": "Clear", "icon": "01d"}],'
        f' "main": {{"temp": {literal}, "feels_like": 1, "humidity": 40, "pressure": 1010}},'
        ' "wind": {"speed": 1.0}}'
    )
    service = _owm_service(cache, lambda request: _json_response(body))

    result = asyncio.run(service.get_current_weather_result(*SEOUL))

    assert result.provenance is Provenance.SYNTHESIZED
    assert result.value == synthesize_current(*SEOUL)


def test_out_of_range_forecast_timestamp_falls_back_to_synthetic(cache):
    body = json.dumps(
        {
            "list": [
                {
                    "dt": 1e20,
                    "main": {"temp": 10.0, "humidity": 50},
                    "weather": [{"main": "Clear", "icon": "01d"}],
                    "wind": {"speed": 2.0},
                }
            ]
        }
    )
    service = _owm_service(cache, lambda request: _json_response(body))

    result = asyncio.run(service.get_forecast_result(*SEOUL))

    assert result.provenance is Provenance.SYNTHESIZED


def test_forecast_with_excess_precipitation_is_served_clamped(cache):
    start = 1714521600
    items = [
        {
            "dt": start + 10800 * index,
            "main": {"temp": 10.0 + index, "humidity": 50},
            "weather": [{"main": "Rain", "icon": "10d"}],
            "wind": {"speed": 2.0},
            "pop": 1.5,
        }
        for index in range(40)
    ]
    service = _owm_service(cache, lambda request: httpx.Response(200, json={"list": items}))

    result = asyncio.run(service.get_forecast_result(*SEOUL))

    assert result.provenance is Provenance.FROM_REMOTE
    assert {point.precipitation_chance_pct for point in result.value.hourly} == {100}


def test_non_finite_samples_from_a_source_fall_back_to_synthetic(cache):
    samples = make_samples(40)
    samples[1] = samples[1].model_copy(update={"temperature_c": float("inf")})
    service = _service(FakeWeatherSource(samples=samples), cache)

    result = asyncio.run(service.get_forecast_result(*SEOUL))

    assert result.provenance is Provenance.SYNTHESIZED


def test_locks_are_released_after_fetches(cache):
    service = _service(FakeWeatherSource(), cache)

    async def scenario():
        await asyncio.gather(
            *(service.get_current_weather_result(float(index), 0.0) for index in range(20))
        )

    asyncio.run(scenario())
    service.clear_all_cache()

    assert cache.active_lock_count == 0


class ThreadRecordingStore(InMemoryKeyValueStore):
    def __init__(self) -> None:
        super().__init__()
        self.threads: set[int] = set()

    def get(self, key: str) -> str | None:
        self.threads.add(threading.get_ident())
        return super().get(key)

    def set(self, key: str, value: str) -> None:
        self.threads.add(threading.get_ident())
        super().set(key, value)


def test_cache_io_runs_off_the_event_loop_thread(clock: TimeController):
    store = ThreadRecordingStore()
    service = _service(FakeWeatherSource(), TtlCache(store, clock=clock))

    asyncio.run(service.get_current_weather_result(*SEOUL))

    assert store.threads
    assert threading.get_ident() not in store.threads
