from pathmon.autostart import AutoStarter
from pathmon.models import Settings

from conftest import Harness


def make_harness(networks=("HomeWiFi",)):
    h = Harness(Settings(auto_start_networks=tuple(networks)))
    starter = AutoStarter(h.engine, h.store, h.network.network_identity, timer_factory=h._make_timer)
    return h, starter


def test_starts_right_away_on_a_listed_network():
    h, starter = make_harness()
    starter.start()

    assert h.engine.running
    assert h.timer("pathmon-autostart").interval == 5.0
    starter.cancel()
    h.engine.close()


def test_stays_idle_on_other_networks():
    h, starter = make_harness(networks=("OfficeWiFi",))
    starter.start()

    assert not h.engine.running
    assert h.network.pinged == []
    starter.cancel()
    h.engine.close()


def test_joining_a_listed_network_starts_diagnostics():
    h, starter = make_harness()
    h.network.identity = "CafeWiFi"
    starter.start()
    assert not h.engine.running

    h.network.identity = "HomeWiFi"
    h.timer("pathmon-autostart").fire()

    assert h.engine.running
    assert h.engine.network_identity == "HomeWiFi"
    assert len(h.engine.internet_history) == 1
    starter.cancel()
    h.engine.close()


def test_losing_the_network_stops_diagnostics():
    h, starter = make_harness()
    starter.start()
    assert h.engine.running

    h.network.identity = None
    h.timer("pathmon-autostart").fire()

    assert not h.engine.running
    assert len(h.engine.internet_history) == 0
    starter.cancel()
    h.engine.close()


def test_manual_stop_is_not_undone_on_the_same_network():
    h, starter = make_harness()
    starter.start()
    h.engine.stop()

    h.timer("pathmon-autostart").fire()

    assert not h.engine.running
    starter.cancel()
    h.engine.close()


def test_raising_identity_query_counts_as_no_network():
    h, starter = make_harness()
    starter.start()

    def broken():
        raise OSError("airport tool missing")

    starter._network_identity = broken
    h.timer("pathmon-autostart").fire()

    assert not h.engine.running
    starter.cancel()
    h.engine.close()


def test_cancel_stops_polling():
    h, starter = make_harness()
    starter.start()
    timer = h.timer("pathmon-autostart")

    starter.cancel()

    assert timer.cancelled
    assert [t for t in h.live_timers() if t.name == "pathmon-autostart"] == []
    h.engine.close()
