import asyncio

import pytest

from conftest import FakeActuator, hero_payload, make_config, mob, status_at

from huntbot import bot as bot_module
from huntbot.bot import AUTO_RETURN_WAIT, HuntBot, run
from huntbot.config import Waypoint
from huntbot.errors import GameNotReadyError, LoginError, NavigationError, ReconnectError
from huntbot.models import Phase

ORC = {"id": "orc", "name": "Orc", "level": 10, "x": 410, "y": 300, "hp": 40, "hpMax": 40,
       "alive": True, "attackable": True}


def run_bot(cfg, act, timeout=5.0):
    hunt = HuntBot(cfg, act)
    stop = asyncio.Event()
    act.hooks["attack"] = lambda entity_id: stop.set()

    async def scenario():
        await asyncio.wait_for(hunt.run(stop), timeout)

    asyncio.run(scenario())
    return hunt


def test_manual_mode_walks_the_phases_and_attacks(slept):
    cfg = make_config()
    act = FakeActuator(status=hero_payload(x=400, y=300), entities=[ORC])

    hunt = run_bot(cfg, act)

    assert hunt.phase_history == [
        Phase.STARTUP, Phase.LOGIN, Phase.WAIT_READY, Phase.NAVIGATE, Phase.HUNT, Phase.SHUTDOWN,
    ]
    assert act.calls[0][0] == "configure"
    assert act.calls[1] == ("navigate", "https://game.test/")
    assert act.called("ensure_ready")
    assert act.called("attack")[0] == ("attack", "orc")
    assert hunt.phase is Phase.SHUTDOWN
    assert hunt.stat_ticks >= 1


def test_login_fills_form_when_no_saved_session(slept):
    cfg = make_config()
    cfg.account.server = "tarhuna"
    act = FakeActuator(entities=[ORC])
    act.logged_in = False
    run_bot(cfg, act)
    assert act.called("login") == [("login", "hero", "secret")]


def test_failed_form_login_is_not_fatal(slept):
    act = FakeActuator(entities=[ORC])
    act.logged_in = False
    act.failing.add("login")
    hunt = run_bot(make_config(), act)
    assert Phase.HUNT in hunt.phase_history


def test_login_navigation_failure_is_fatal(slept):
    act = FakeActuator()
    act.failing.add("navigate")
    hunt = HuntBot(make_config(), act)
    with pytest.raises(LoginError):
        asyncio.run(hunt.run(asyncio.Event()))
    assert hunt.phase_history[-1] is Phase.SHUTDOWN


def test_game_not_ready_is_fatal(slept):
    act = FakeActuator()
    act.failing.add("ensure_ready")
    hunt = HuntBot(make_config(), act)
    with pytest.raises(GameNotReadyError):
        asyncio.run(hunt.run(asyncio.Event()))
    assert Phase.HUNT not in hunt.phase_history


def test_initial_navigation_failure_is_fatal(slept):
    cfg = make_config()
    act = FakeActuator(status=hero_payload(map_id="town"))
    act.failing.add("move_to")
    cfg.profile.waypoints = [Waypoint(map_id="town", x=10, y=10)]
    hunt = HuntBot(cfg, act)
    with pytest.raises(NavigationError):
        asyncio.run(hunt.run(asyncio.Event()))
    assert hunt.phase_history[-2:] == [Phase.NAVIGATE, Phase.SHUTDOWN]


def test_auto_detect_skips_navigation_and_recentres(slept):
    cfg = make_config(auto_detect_mode=True)
    cfg.profile.hunting_ground.radius = 0
    act = FakeActuator(status=hero_payload(x=50, y=60, map_id="cave"),
                       entities=[dict(ORC, x=55, y=60)])

    hunt = run_bot(cfg, act)

    assert Phase.NAVIGATE not in hunt.phase_history
    ground = cfg.profile.hunting_ground
    assert (ground.map_id, ground.center_x, ground.center_y, ground.radius) == ("cave", 50, 60, 200)


def test_stop_during_login_shuts_down(slept):
    act = FakeActuator()
    hunt = HuntBot(make_config(), act)
    stop = asyncio.Event()
    act.hooks["wait_ready"] = lambda: stop.set()
    asyncio.run(hunt.run(stop))
    assert hunt.phase_history == [Phase.STARTUP, Phase.LOGIN, Phase.SHUTDOWN]


def test_module_run_with_explicit_actuator(slept):
    act = FakeActuator(entities=[ORC])
    stop = asyncio.Event()
    act.hooks["attack"] = lambda entity_id: stop.set()
    asyncio.run(asyncio.wait_for(run(stop, make_config(), act), 5))
    assert act.called("attack")


# ── single ticks ─────────────────────────────────────────────

def seeded(cfg=None, **status):
    act  = FakeActuator()
    hunt = HuntBot(cfg or make_config(), act)
    hunt.store.update_status(status_at(**status))
    hunt.store.set_phase(Phase.HUNT)
    return hunt, act


def test_death_runs_recovery_sequence(slept):
    hunt, act = seeded(dead=True)
    asyncio.run(hunt.hunt_tick())
    assert act.called("respawn")
    assert hunt.phase_history[-3:] == [Phase.DEAD, Phase.RECOVER, Phase.HUNT]
    assert hunt.phase is Phase.HUNT
    assert hunt.stat_deaths == 1
    assert not act.called("attack")


def test_failed_respawn_is_logged_and_hunt_resumes(slept):
    hunt, act = seeded(dead=True)
    act.failing.add("respawn")
    hunt.combat.current_target = mob("orc")
    asyncio.run(hunt.hunt_tick())
    assert Phase.RECOVER not in hunt.phase_history
    assert hunt.phase is Phase.HUNT
    assert hunt.combat.current_target is None


def test_death_in_auto_detect_waits_and_recentres(slept):
    cfg = make_config(auto_detect_mode=True)
    hunt, act = seeded(cfg, x=11, y=22, map_id="town", dead=True)
    asyncio.run(hunt.hunt_tick())
    assert act.called("respawn")
    assert AUTO_RETURN_WAIT in slept
    assert cfg.profile.hunting_ground.map_id == "town"
    assert (cfg.profile.hunting_ground.center_x, cfg.profile.hunting_ground.center_y) == (11, 22)
    assert hunt.phase_history[-2:] == [Phase.DEAD, Phase.HUNT]


def test_disconnect_reconnects_with_backoff(slept):
    hunt, act = seeded()
    hunt.store.update_connection(False)
    asyncio.run(hunt.hunt_tick())
    assert hunt.phase_history[-2:] == [Phase.DISCONNECTED, Phase.HUNT]
    assert hunt.store.is_connected()
    assert slept[0] == 5.0
    assert hunt.stat_reconnects == 1


def test_exhausted_reconnects_are_fatal(slept):
    hunt, act = seeded()
    act.failing.add("ensure_ready")
    hunt.store.update_connection(False)
    with pytest.raises(ReconnectError):
        asyncio.run(hunt.hunt_tick())
    assert slept[:3] == [5.0, 10.0, 20.0]
    assert len(act.called("navigate")) == 3


def test_stuck_triggers_patrol_without_phase_change(slept):
    hunt, act = seeded(x=400, y=300, map_id="forest")
    hunt.store.update_status(status_at(x=401, y=300, map_id="forest"))
    asyncio.run(hunt.hunt_tick())
    assert act.called("move_to")
    assert hunt.phase is Phase.HUNT
    assert hunt.navigator.patrols == 1


def test_stuck_patrol_failure_is_not_fatal(slept):
    hunt, act = seeded(x=400, y=300, map_id="forest")
    hunt.store.update_status(status_at(x=400, y=300, map_id="forest"))
    act.failing.add("move_to")
    asyncio.run(hunt.hunt_tick())
    assert hunt.phase is Phase.HUNT


def test_idle_patrol_when_no_mobs_after_interval(slept):
    cfg = make_config(patrol_interval=0.001)
    hunt, act = seeded(cfg, x=400, y=300, map_id="forest")
    asyncio.run(hunt.hunt_tick())
    assert hunt.navigator.patrols == 0

    async def later():
        await asyncio.sleep(0.01)
        await hunt.hunt_tick()

    hunt._last_patrol -= 1.0
    asyncio.run(later())
    assert hunt.navigator.patrols == 1


def test_failed_combat_tick_is_logged(slept):
    hunt, act = seeded(x=0, y=0)
    hunt.store.update_entities([mob("orc", x=10)])
    act.failing.add("attack")
    asyncio.run(hunt.hunt_tick())
    assert hunt.store.action_count() == 1


def test_idle_break_on_action_cadence(slept):
    cfg = make_config()
    cfg.behavior.idle_break_every = 2
    cfg.behavior.idle_break_duration = 45
    hunt, act = seeded(cfg, x=0, y=0)
    asyncio.run(hunt.hunt_tick())
    assert 45 not in slept
    asyncio.run(hunt.hunt_tick())
    assert 45 in slept


def test_poll_once_fills_store(slept):
    act = FakeActuator(status=hero_payload(x=5, y=6), entities=[ORC], connected=False)
    hunt = HuntBot(make_config(), act)
    asyncio.run(hunt.poll_once())
    assert hunt.store.get_status().x == 5
    assert [e.id for e in hunt.store.get_entities()] == ["orc"]
    assert not hunt.store.is_connected()


def test_poll_once_status_failure_skips_rest(slept):
    act = FakeActuator(entities=[ORC])
    act.failing.add("get_agent_status")
    hunt = HuntBot(make_config(), act)
    asyncio.run(hunt.poll_once())
    assert hunt.store.get_entities() == []
    assert [c[0] for c in act.calls] == ["get_agent_status"]


def test_connection_read_error_counts_as_disconnected(slept):
    act = FakeActuator()
    act.failing.add("is_connected")
    hunt = HuntBot(make_config(), act)
    asyncio.run(hunt.poll_once())
    assert not hunt.store.is_connected()
    assert hunt.store.retries() == 1


def test_sleep_or_stop():
    async def scenario():
        stop = asyncio.Event()
        assert await bot_module.sleep_or_stop(stop, 0.001) is False
        stop.set()
        assert await bot_module.sleep_or_stop(stop, 5) is True

    asyncio.run(scenario())


def test_poll_once_survives_non_finite_telemetry(slept):
    act = FakeActuator(
        status=dict(hero_payload(), x=float("nan"), hp=float("nan")),
        entities=[{"id": "a", "name": "Orc", "level": float("nan"), "hp": 5}],
    )
    hunt = HuntBot(make_config(), act)
    asyncio.run(hunt.poll_once())
    assert hunt.store.get_status().x == 0.0
    assert [e.id for e in hunt.store.get_entities()] == ["a"]
    assert hunt.store.is_connected()


def test_login_sends_browser_settings_first(slept):
    cfg = make_config(headless=True, user_data_dir="./profile")
    act = FakeActuator(entities=[ORC])
    run_bot(cfg, act)
    (_, settings), = act.called("configure")
    assert settings["headless"] is True
    assert settings["user_data_dir"] == "./profile"
    assert settings["viewport"] == {"width": 1280, "height": 720}
    assert settings["mouse_speed_range"] == 200


def test_rejected_browser_settings_do_not_stop_login(slept):
    act = FakeActuator(entities=[ORC])
    act.failing.add("configure")
    hunt = run_bot(make_config(), act)
    assert act.called("navigate")
    assert Phase.HUNT in hunt.phase_history


def test_disconnect_logs_failed_check_count(slept, caplog):
    hunt, act = seeded()
    hunt.store.update_connection(False)
    hunt.store.update_connection(False)
    with caplog.at_level("WARNING", logger="HuntBot"):
        asyncio.run(hunt.hunt_tick())
    assert "Connection lost (2 failed checks)" in caplog.text
