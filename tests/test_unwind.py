import asyncio
import math
import threading

import pytest

from cablewrap.core.azimuth import estimate_azimuth, fold_degrees
from cablewrap.core.errors import ManeuverCommandFailure, ManeuverIncomplete, ManeuverInProgressError
from cablewrap.core.mount_service import SimulatedMount
from cablewrap.core.unwind import UnwindManeuver, UnwindOutcome, UnwindPhase
from cablewrap.models.mount import PositionSample


async def no_sleep(_seconds):
    return None


class FailingMount(SimulatedMount):
    """Simulated mount whose Nth slew fails (returns False, or raises if error is set)."""

    def __init__(self, fail_on: int, error: Exception = None) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.error = error
        self.slews = 0

    async def slew_to(self, ra_hours, dec_degrees):
        self.slews += 1
        if self.slews == self.fail_on:
            if self.error is not None:
                raise self.error
            return False
        return await super().slew_to(ra_hours, dec_degrees)


SITE = {"site_lat_degrees": 45.0, "site_lon_degrees": 7.0, "lst_hours": 3.0}


def site_mount(**fields):
    return SimulatedMount(PositionSample(connected=True, **{**SITE, **fields}))


def slew_targets(mount):
    return [(ra, dec) for kind, ra, dec in mount.commands if kind == "slew"]


def commanded_azimuths(mount):
    return [
        estimate_azimuth(ra, dec, SITE["lst_hours"], SITE["site_lat_degrees"], SITE["site_lon_degrees"], 0.0)
        for ra, dec in slew_targets(mount)
    ]


def altitude(ra, dec):
    ha = math.radians((SITE["lst_hours"] - ra) * 15.0)
    lat = math.radians(SITE["site_lat_degrees"])
    dec = math.radians(dec)
    return math.degrees(math.asin(math.sin(dec) * math.sin(lat) + math.cos(dec) * math.cos(lat) * math.cos(ha)))


def net_rotation(azimuths):
    return sum(fold_degrees(b - a) for a, b in zip(azimuths, azimuths[1:]))


def make_maneuver(accumulator, mount, **options):
    options.setdefault("sleep", no_sleep)
    return UnwindManeuver(accumulator, mount, **options)


def test_unwind_converges_to_zero_in_bounded_steps(accumulator):
    mount = site_mount()
    accumulator.apply_delta(500.0)
    maneuver = make_maneuver(accumulator, mount)

    result = asyncio.run(maneuver.run())

    assert result.outcome is UnwindOutcome.COMPLETED
    assert result.steps == 9
    assert result.start_degrees == pytest.approx(500.0)
    assert accumulator.total_degrees == 0.0
    assert not accumulator.state.alert_fired
    assert not accumulator.suppressed
    assert not maneuver.in_progress
    assert maneuver.phase is UnwindPhase.IDLE
    assert [c[0] for c in mount.commands] == ["slew"] * 10 + ["home"]
    assert accumulator.state.history[-1].note.startswith("Auto-unwind complete")


def test_commanded_slews_rotate_azimuth_back_by_the_wrap(accumulator):
    mount = site_mount()
    start_az = estimate_azimuth(0.0, 0.0, SITE["lst_hours"], SITE["site_lat_degrees"], SITE["site_lon_degrees"], 0.0)
    accumulator.state.total_degrees = 500.0

    asyncio.run(make_maneuver(accumulator, mount).run())

    azimuths = commanded_azimuths(mount)
    # safe position keeps the current azimuth, only raises the altitude
    assert azimuths[0] == pytest.approx(start_az, abs=1e-6)
    steps = [fold_degrees(b - a) for a, b in zip(azimuths, azimuths[1:])]
    assert all(-60.0 - 1e-6 <= s < 0 for s in steps)
    assert net_rotation(azimuths) == pytest.approx(-500.0, abs=1e-6)
    for ra, dec in slew_targets(mount):
        assert altitude(ra, dec) == pytest.approx(65.0, abs=1e-6)


def test_negative_wrap_unwinds_with_azimuth_increasing(accumulator):
    mount = site_mount()
    accumulator.state.total_degrees = -130.0
    result = asyncio.run(make_maneuver(accumulator, mount).run())
    assert result.outcome is UnwindOutcome.COMPLETED
    assert result.steps == 3
    assert net_rotation(commanded_azimuths(mount)) == pytest.approx(130.0, abs=1e-6)


def test_southern_site_stays_above_horizon(accumulator):
    mount = SimulatedMount(PositionSample(connected=True, site_lat_degrees=-31.0, site_lon_degrees=116.0, lst_hours=7.5))
    accumulator.state.total_degrees = 250.0
    asyncio.run(make_maneuver(accumulator, mount).run())
    lat = math.radians(-31.0)
    for ra, dec in slew_targets(mount):
        ha = math.radians((7.5 - ra) * 15.0)
        d = math.radians(dec)
        alt = math.degrees(math.asin(math.sin(d) * math.sin(lat) + math.cos(d) * math.cos(lat) * math.cos(ha)))
        assert alt == pytest.approx(65.0, abs=1e-6)
    azimuths = [estimate_azimuth(ra, dec, 7.5, -31.0, 116.0, 0.0) for ra, dec in slew_targets(mount)]
    assert net_rotation(azimuths) == pytest.approx(-250.0, abs=1e-6)


def test_unset_site_fails_before_moving(accumulator):
    mount = SimulatedMount(PositionSample(connected=True))
    accumulator.state.total_degrees = 200.0
    with pytest.raises(ManeuverCommandFailure, match="Site location not set"):
        asyncio.run(make_maneuver(accumulator, mount).run())
    assert mount.commands == []
    assert accumulator.total_degrees == pytest.approx(200.0)


def test_near_zero_is_reset_without_moving(accumulator):
    mount = SimulatedMount()
    accumulator.state.total_degrees = 5.0
    result = asyncio.run(make_maneuver(accumulator, mount).run())
    assert result.outcome is UnwindOutcome.ALREADY_UNWOUND
    assert accumulator.total_degrees == 0.0
    assert mount.commands == []
    assert accumulator.state.history[-1].note.startswith("Unwind skipped: already near zero")


def test_cancel_keeps_partial_progress(accumulator):
    mount = SimulatedMount()
    accumulator.state.total_degrees = 500.0

    async def scenario():
        cancel = asyncio.Event()

        async def sleep_then_cancel(_seconds):
            cancel.set()

        maneuver = make_maneuver(accumulator, mount, sleep=sleep_then_cancel)
        return await maneuver.run(cancel), maneuver

    result, maneuver = asyncio.run(scenario())
    assert result.outcome is UnwindOutcome.CANCELLED
    assert result.steps == 1
    assert result.remaining_degrees == pytest.approx(440.0)
    assert accumulator.total_degrees == pytest.approx(440.0)
    assert maneuver.phase is UnwindPhase.CANCELLED
    assert not accumulator.suppressed
    assert "home" not in [c[0] for c in mount.commands]
    assert accumulator.state.history[-1].note == "Auto-unwind cancelled at +440.0°"


def test_failed_step_raises_and_releases_accumulator(accumulator):
    mount = FailingMount(fail_on=3)
    accumulator.state.total_degrees = 500.0
    maneuver = make_maneuver(accumulator, mount)

    with pytest.raises(ManeuverCommandFailure) as exc:
        asyncio.run(maneuver.run())

    assert exc.value.remaining_degrees == pytest.approx(440.0)
    assert accumulator.total_degrees == pytest.approx(440.0)
    assert not accumulator.suppressed
    assert not maneuver.in_progress
    assert maneuver.phase is UnwindPhase.FAILED
    assert accumulator.state.history[-1].note.startswith("Auto-unwind failed: Unwind step 2 failed")


def test_mount_exception_becomes_command_failure(accumulator):
    mount = FailingMount(fail_on=1, error=RuntimeError("driver went away"))
    accumulator.state.total_degrees = 200.0
    with pytest.raises(ManeuverCommandFailure, match="driver went away"):
        asyncio.run(make_maneuver(accumulator, mount).run())
    assert accumulator.total_degrees == pytest.approx(200.0)
    assert not accumulator.suppressed


def test_disconnected_mount_fails_before_moving(accumulator):
    mount = SimulatedMount(PositionSample.disconnected())
    accumulator.state.total_degrees = 200.0
    with pytest.raises(ManeuverCommandFailure, match="Mount not connected"):
        asyncio.run(make_maneuver(accumulator, mount).run())
    assert mount.commands == []


def test_step_budget_exhausted(accumulator):
    mount = SimulatedMount()
    accumulator.state.total_degrees = 500.0
    with pytest.raises(ManeuverIncomplete) as exc:
        asyncio.run(make_maneuver(accumulator, mount, max_steps=2).run())
    assert exc.value.remaining_degrees == pytest.approx(380.0)
    assert accumulator.total_degrees == pytest.approx(380.0)
    assert "home" not in [c[0] for c in mount.commands]
    assert not accumulator.suppressed


def test_second_request_while_running_is_busy(accumulator):
    mount = SimulatedMount(command_delay_sec=0.01)
    accumulator.state.total_degrees = 120.0
    maneuver = make_maneuver(accumulator, mount)

    async def scenario():
        return await asyncio.gather(maneuver.run(), maneuver.run())

    first, second = asyncio.run(scenario())
    assert first.outcome is UnwindOutcome.COMPLETED
    assert second.outcome is UnwindOutcome.BUSY
    assert accumulator.total_degrees == 0.0


def test_deltas_are_suppressed_while_unwinding(accumulator):
    mount = SimulatedMount()
    accumulator.state.total_degrees = 100.0
    seen = []

    async def sleep_and_probe(_seconds):
        seen.append(accumulator.apply_delta(45.0))

    asyncio.run(make_maneuver(accumulator, mount, sleep=sleep_and_probe).run())
    assert seen and not any(seen)
    assert accumulator.total_degrees == 0.0


def test_reset_refused_while_maneuver_owns_accumulator(accumulator):
    accumulator.state.total_degrees = 200.0
    accumulator.suppressed = True
    with pytest.raises(ManeuverInProgressError):
        accumulator.reset()
    assert accumulator.total_degrees == 200.0
    accumulator.reset("Auto-unwind complete", by_maneuver=True)
    assert accumulator.total_degrees == 0.0


def test_reset_from_another_thread_refused_mid_maneuver(accumulator):
    mount = SimulatedMount(command_delay_sec=0.05)
    accumulator.state.total_degrees = 200.0
    maneuver = make_maneuver(accumulator, mount)
    errors = []

    def reset_in_thread():
        try:
            accumulator.reset()
        except ManeuverInProgressError as e:
            errors.append(e)

    async def scenario():
        task = asyncio.create_task(maneuver.run())
        await asyncio.sleep(0)
        assert maneuver.in_progress
        await asyncio.to_thread(reset_in_thread)
        return await task

    result = asyncio.run(scenario())
    assert len(errors) == 1
    assert result.outcome is UnwindOutcome.COMPLETED
    assert accumulator.total_degrees == 0.0


def test_unwind_starting_during_reset_sees_the_reset(accumulator):
    """A reset holding the lock finishes before the maneuver reads the total."""
    accumulator.state.total_degrees = 200.0
    mount = SimulatedMount()
    entered = threading.Event()
    release = threading.Event()
    append_history = accumulator.append_history

    def slow_append_history(*args, **kwargs):
        entered.set()
        release.wait(2)
        return append_history(*args, **kwargs)

    accumulator.append_history = slow_append_history
    resetter = threading.Thread(target=accumulator.reset)
    resetter.start()
    assert entered.wait(2)
    threading.Timer(0.05, release.set).start()

    result = asyncio.run(make_maneuver(accumulator, mount).run())
    resetter.join(2)

    assert result.outcome is UnwindOutcome.ALREADY_UNWOUND
    assert mount.commands == []
    assert not accumulator.suppressed
