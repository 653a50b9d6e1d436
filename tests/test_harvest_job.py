"""
End-to-end harvest against the fake portal.
"""
from pathlib import Path

import pytest

from apps.harvester.harvest_job import run_harvest
from tests.conftest import FakePortal, igc_body, make_flight
from utils.errors import ConfigError
from utils.schemas import FlightRecord


@pytest.mark.asyncio
async def test_full_run_persists_every_flight(make_settings) -> None:
    portal = FakePortal([make_flight(n) for n in range(5)])
    config = make_settings(PAGE_SIZE=2)

    summary = await run_harvest(config, transport=portal.transport)

    output_dir = Path(config.OUTPUT_DIR)
    expected_ids = [str(1000 + n) for n in range(5)]

    assert portal.listing_offsets == [0, 2, 4]
    assert summary.records_persisted == 5
    assert summary.pages_fetched == 3
    assert sorted(p.stem for p in output_dir.glob("*.json")) == expected_ids
    assert sorted(p.stem for p in output_dir.glob("*.igc")) == expected_ids

    for n, flight_id in enumerate(expected_ids):
        assert (output_dir / f"{flight_id}.igc").read_bytes() == igc_body(flight_id)
        stored = FlightRecord.from_json_bytes((output_dir / f"{flight_id}.json").read_bytes())
        assert stored.model_dump() == make_flight(n)


@pytest.mark.asyncio
async def test_listing_uses_configured_locations(make_settings) -> None:
    portal = FakePortal([make_flight(0)])
    config = make_settings(TAKEOFF_LOCATIONS={"Wank (DE)": "9438", "Blomberg (DE)": "9538"})

    await run_harvest(config, transport=portal.transport)

    params = portal.listing_params[0]
    assert params.get_list("fkto[]") == ["9438", "9538"]
    assert params.get_list("l-fkto[]") == ["Wank (DE)", "Blomberg (DE)"]


@pytest.mark.asyncio
async def test_missing_credentials_fail_before_any_request(make_settings) -> None:
    portal = FakePortal([make_flight(0)])

    with pytest.raises(ConfigError):
        await run_harvest(make_settings(XC_PASS=""), transport=portal.transport)

    assert portal.requests == []


@pytest.mark.asyncio
async def test_unusable_remote_store_degrades_to_local(make_settings) -> None:
    portal = FakePortal([make_flight(0)])
    config = make_settings(REMOTE_BACKEND="sftp", SFTP_HOST="")

    summary = await run_harvest(config, transport=portal.transport)

    assert summary.records_persisted == 1
    assert summary.upload_failures == 0
    assert (Path(config.OUTPUT_DIR) / "1000.igc").exists()
