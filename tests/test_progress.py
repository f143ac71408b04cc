from __future__ import annotations

import asyncio

import pytest

from congreso_ar.errors import UpstreamUnavailable
from congreso_ar.models import DIPUTADOS, SENADORES, ProgressEvent
from congreso_ar.progress import ProgressChannel, emit


class TestProgressEvent:
    def test_list_event_shape(self) -> None:
        assert ProgressEvent(type="list_loaded", total=3).to_dict() == {"type": "list_loaded", "total": 3}

    def test_deputy_done_shape(self) -> None:
        event = ProgressEvent(
            type="deputy_done",
            total=3,
            index=2,
            chamber=DIPUTADOS,
            legislator={"given_name": "Ana", "surname": "Pérez", "slug": "aperez"},
            total_projects=0,
            profession="",
            birth_date="",
        )
        assert event.to_dict() == {
            "type": "deputy_done",
            "total": 3,
            "index": 2,
            "diputado": {"given_name": "Ana", "surname": "Pérez", "slug": "aperez"},
            "total_projects": 0,
            "profession": "",
            "birth_date": "",
        }
        assert event.is_terminal

    def test_senator_payload_key(self) -> None:
        event = ProgressEvent(
            type="senator_error",
            total=1,
            index=1,
            chamber=SENADORES,
            legislator={"name": "LÓPEZ, Juan", "profile_url": "https://www.senado.gob.ar/x"},
            error="boom",
        )
        data = event.to_dict()
        assert "senador" in data
        assert data["error"] == "boom"
        assert event.is_terminal

    def test_start_is_not_terminal(self) -> None:
        assert not ProgressEvent(type="deputy_start", total=1, index=1).is_terminal


class TestEmit:
    def test_sync_and_async_callbacks(self) -> None:
        seen: list[str] = []

        async def async_cb(event: ProgressEvent) -> None:
            seen.append(f"async:{event.type}")

        async def _run() -> None:
            event = ProgressEvent(type="list_loaded", total=1)
            await emit(None, event)
            await emit(lambda e: seen.append(f"sync:{e.type}"), event)
            await emit(async_cb, event)

        asyncio.run(_run())
        assert seen == ["sync:list_loaded", "async:list_loaded"]


class TestProgressChannel:
    def test_yields_events_then_result(self) -> None:
        channel = ProgressChannel()

        async def work() -> str:
            for i in range(1, 4):
                await channel.publish(ProgressEvent(type="deputy_start", total=3, index=i))
            return "finished"

        async def _collect() -> list[int]:
            return [event.index async for event in channel.run(work())]

        assert asyncio.run(_collect()) == [1, 2, 3]
        assert channel.result == "finished"

    def test_error_reraised_after_drain(self) -> None:
        channel = ProgressChannel()

        async def work() -> None:
            await channel.publish(ProgressEvent(type="list_loaded", total=1))
            raise UpstreamUnavailable(DIPUTADOS, "roster down")

        seen: list[str] = []

        async def _collect() -> None:
            async for event in channel.run(work()):
                seen.append(event.type)

        with pytest.raises(UpstreamUnavailable):
            asyncio.run(_collect())
        assert seen == ["list_loaded"]

    def test_consumer_leaving_cancels_work(self) -> None:
        channel = ProgressChannel(maxsize=1)
        state = {"cancelled": False}

        async def work() -> None:
            try:
                for i in range(100):
                    await channel.publish(ProgressEvent(type="deputy_start", total=100, index=i))
            except asyncio.CancelledError:
                state["cancelled"] = True
                raise

        async def _first() -> None:
            stream = channel.run(work())
            async for _ in stream:
                break
            await stream.aclose()

        asyncio.run(_first())
        assert state["cancelled"] is True
