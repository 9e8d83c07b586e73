"""Tests for propagating a delete to every enabled service."""

from __future__ import annotations

import allure
import pytest

from core.models.track_models import ScrobbleIdentifier, ScrobbleService, ServiceObservation
from services.delete_fanout import DeleteFanout, build_identifier
from tests.factories import make_snapshot
from tests.mocks.logger_mock import MockLogger
from tests.mocks.protocol_mocks import FakeTrackFetcher

LB = ScrobbleService.LISTENBRAINZ
LFM = ScrobbleService.LASTFM
LIBRE = ScrobbleService.LIBREFM


def test_build_identifier() -> None:
    """Observations fill timestamp and id; absent ones leave them empty."""
    observation = ServiceObservation(timestamp=1000, external_id="msid")
    assert build_identifier("Beck", "Loser", observation) == ScrobbleIdentifier(
        artist="Beck", track="Loser", timestamp=1000, external_id="msid"
    )
    assert build_identifier("Beck", "Loser", None) == ScrobbleIdentifier(artist="Beck", track="Loser")


@allure.epic("Scrobble Sync")
@allure.feature("Delete fan-out")
class TestDeleteFanout:
    """Tests for DeleteFanout.delete_all()."""

    @allure.story("Partial observations")
    @allure.title("Every enabled service is targeted even without an observation")
    @pytest.mark.asyncio
    async def test_targets_all_enabled_services(self) -> None:
        """Three enabled services, two observations: three calls, one failure."""
        fetchers = {service: FakeTrackFetcher(service) for service in (LB, LFM, LIBRE)}
        error_logger = MockLogger("error")
        fanout = DeleteFanout(fetchers, make_snapshot(LB, LFM, LIBRE, preferred=LB), MockLogger("console"), error_logger)
        service_info = {
            LB: ServiceObservation(timestamp=1000, external_id="msid-1"),
            LFM: ServiceObservation(timestamp=1050),
        }

        with allure.step("Delete the play"):
            result = await fanout.delete_all("Beck", "Profanity Prayers", service_info)

        with allure.step("Verify per-service calls and outcome"):
            assert all(fetcher.call_count("delete_scrobble") == 1 for fetcher in fetchers.values())
            assert result == {LB: True, LFM: True, LIBRE: False}
            assert fetchers[LB].deleted[0].external_id == "msid-1"
            assert fetchers[LFM].deleted[0].timestamp == 1050
            assert fetchers[LFM].calls[0][1][0] == "lastfm-token"
            assert any("Delete failed" in message for message in error_logger.warning_messages)

    @pytest.mark.asyncio
    async def test_skips_services_without_delete_support(self) -> None:
        """Adapters that cannot delete are not called and absent from the result."""
        fetchers = {LB: FakeTrackFetcher(LB), LFM: FakeTrackFetcher(LFM, supports_delete=False)}
        fanout = DeleteFanout(fetchers, make_snapshot(LB, LFM), MockLogger("console"), MockLogger("error"))

        result = await fanout.delete_all("Beck", "Loser", {LB: ServiceObservation(timestamp=1000, external_id="m")})

        assert result == {LB: True}
        assert fetchers[LFM].call_count("delete_scrobble") == 0

    @pytest.mark.asyncio
    async def test_disabled_services_untouched(self) -> None:
        """Only enabled services are targeted."""
        fetchers = {LB: FakeTrackFetcher(LB), LFM: FakeTrackFetcher(LFM)}
        fanout = DeleteFanout(fetchers, make_snapshot(LB, LFM, disabled=(LFM,)), MockLogger("console"), MockLogger("error"))

        result = await fanout.delete_all("Beck", "Loser", {LFM: ServiceObservation(timestamp=1000)})

        assert result == {LB: False}
        assert fetchers[LFM].calls == []

    @pytest.mark.asyncio
    async def test_adapter_error_is_contained(self) -> None:
        """A failing adapter does not stop the others."""
        fetchers = {LB: FakeTrackFetcher(LB, fail_on={"delete_scrobble"}), LFM: FakeTrackFetcher(LFM)}
        fanout = DeleteFanout(fetchers, make_snapshot(LB, LFM), MockLogger("console"), MockLogger("error"))
        info = {LB: ServiceObservation(timestamp=1000, external_id="m"), LFM: ServiceObservation(timestamp=1000)}

        assert await fanout.delete_all("Beck", "Loser", info) == {LB: False, LFM: True}
