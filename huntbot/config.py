"""
Bot configuration.

Loaded from a YAML file; a handful of secrets can come from the
environment instead. Zero / missing values mean "use the default".
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from .errors import ConfigError

log = logging.getLogger("HuntBot")

DEFAULT_BRIDGE_URL = "http://127.0.0.1:9222/bot"
AUTO_DETECT_RADIUS = 200.0


@dataclass
class AccountConfig:
    username:  str = ""
    password:  str = ""
    server:    str = ""
    start_url: str = ""


@dataclass
class HuntingGround:
    map_id:   str   = ""
    center_x: float = 0.0
    center_y: float = 0.0
    radius:   float = 0.0


@dataclass
class Waypoint:
    map_id:      str   = ""
    x:           float = 0.0
    y:           float = 0.0
    description: str   = ""
    action:      str   = "walk"   # walk | portal | door
    selector:    str   = ""


@dataclass
class RespawnPoint:
    map_id: str   = ""
    x:      float = 0.0
    y:      float = 0.0


@dataclass
class ProfileConfig:
    name:           str           = ""
    hunting_ground: HuntingGround = field(default_factory=HuntingGround)
    waypoints:      list          = field(default_factory=list)   # list[Waypoint]
    town_respawn:   RespawnPoint  = field(default_factory=RespawnPoint)


@dataclass
class CombatConfig:
    hp_threshold:        int   = 0       # retreat below this HP %
    mp_threshold:        int   = 0
    target_priority:     list  = field(default_factory=list)
    retarget_on_loss:    bool  = False
    max_engage_distance: float = 0.0
    min_level:           int   = 0
    max_level:           int   = 0


@dataclass
class BehaviorConfig:
    min_delay_ms:        int   = 0
    max_delay_ms:        int   = 0
    mouse_speed_range:   int   = 0
    path_jitter:         float = 0.0
    idle_break_every:    int   = 0
    idle_break_duration: float = 0.0

    @property
    def min_delay(self) -> float:
        return self.min_delay_ms / 1000.0

    @property
    def max_delay(self) -> float:
        return self.max_delay_ms / 1000.0


@dataclass
class ReconnectConfig:
    base:     float = 5.0
    factor:   float = 2.0
    max:      float = 60.0
    attempts: int   = 3


@dataclass
class RuntimeConfig:
    headless:         bool  = False
    debug:            bool  = False
    user_data_dir:    str   = ""
    viewport_width:   int   = 0
    viewport_height:  int   = 0
    screenshot_dir:   str   = ""
    auto_detect_mode: bool  = False
    bridge_url:       str   = ""
    log_file:         str   = ""
    tick_interval:    float = 0.0
    poll_interval:    float = 0.0
    patrol_interval:  float = 0.0
    ready_timeout:    float = 0.0
    reconnect:        ReconnectConfig = field(default_factory=ReconnectConfig)


@dataclass
class Config:
    account:  AccountConfig  = field(default_factory=AccountConfig)
    profile:  ProfileConfig  = field(default_factory=ProfileConfig)
    combat:   CombatConfig   = field(default_factory=CombatConfig)
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)
    runtime:  RuntimeConfig  = field(default_factory=RuntimeConfig)


# ═══════════════════════════════════════════════════════════════
#  LOADING
# ═══════════════════════════════════════════════════════════════

def _section(data: dict, key: str) -> dict:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key} must be a mapping, got {type(value).__name__}")
    return value


def _coerce(value: Any, kind, where: str) -> Any:
    """Check a scalar against its field type. YAML numbers are accepted as strings."""
    if kind is str:
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return str(value)
    elif kind is bool:
        if isinstance(value, bool):
            return value
    elif kind is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif kind is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif kind is list:
        if isinstance(value, list):
            return value
    else:
        return value
    raise ConfigError(f"{where} must be {kind.__name__}, got {type(value).__name__}")


def _build(cls, data: Any, where: str):
    """Instantiate a flat dataclass from a mapping, rejecting unknown keys and wrong types."""
    if not isinstance(data, dict):
        raise ConfigError(f"{where} must be a mapping, got {type(data).__name__}")
    fields  = cls.__dataclass_fields__
    unknown = set(data) - set(fields)
    if unknown:
        raise ConfigError(f"{where}: unknown keys {sorted(unknown)}")
    values = {
        key: _coerce(value, fields[key].type, f"{where}.{key}")
        for key, value in data.items()
        if value is not None
    }
    return cls(**values)


def from_dict(data: dict) -> Config:
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    profile_raw = dict(_section(data, "profile"))
    waypoints   = profile_raw.pop("waypoints", None) or []
    if not isinstance(waypoints, list):
        raise ConfigError("profile.waypoints must be a list")
    profile = ProfileConfig(
        name           = _coerce(profile_raw.pop("name", None) or "", str, "profile.name"),
        hunting_ground = _build(HuntingGround, _section(profile_raw, "hunting_ground"), "profile.hunting_ground"),
        waypoints      = [_build(Waypoint, wp or {}, f"profile.waypoints[{i}]") for i, wp in enumerate(waypoints)],
        town_respawn   = _build(RespawnPoint, _section(profile_raw, "town_respawn"), "profile.town_respawn"),
    )
    profile_raw.pop("hunting_ground", None)
    profile_raw.pop("town_respawn", None)
    if profile_raw:
        raise ConfigError(f"profile: unknown keys {sorted(profile_raw)}")

    runtime_raw = dict(_section(data, "runtime"))
    reconnect   = _build(ReconnectConfig, _section(runtime_raw, "reconnect"), "runtime.reconnect")
    runtime_raw.pop("reconnect", None)
    runtime = _build(RuntimeConfig, runtime_raw, "runtime")
    runtime.reconnect = reconnect

    combat = _build(CombatConfig, _section(data, "combat"), "combat")
    combat.target_priority = [str(name) for name in (combat.target_priority or [])]

    return Config(
        account  = _build(AccountConfig, _section(data, "account"), "account"),
        profile  = profile,
        combat   = combat,
        behavior = _build(BehaviorConfig, _section(data, "behavior"), "behavior"),
        runtime  = runtime,
    )


def apply_env(cfg: Config, env: Optional[dict] = None) -> Config:
    env = os.environ if env is None else env
    cfg.account.username = env.get("HUNTBOT_USERNAME", cfg.account.username)
    cfg.account.password = env.get("HUNTBOT_PASSWORD", cfg.account.password)
    cfg.runtime.bridge_url = env.get("HUNTBOT_BRIDGE_URL", cfg.runtime.bridge_url)
    return cfg


def apply_defaults(cfg: Config) -> Config:
    rt = cfg.runtime
    rt.viewport_width  = rt.viewport_width  or 1280
    rt.viewport_height = rt.viewport_height or 720
    rt.screenshot_dir  = rt.screenshot_dir  or "./screenshots"
    rt.bridge_url      = rt.bridge_url      or DEFAULT_BRIDGE_URL
    rt.log_file        = rt.log_file        or "logs/huntbot.log"
    rt.tick_interval   = rt.tick_interval   or 2.0
    rt.poll_interval   = rt.poll_interval   or 1.0
    rt.patrol_interval = rt.patrol_interval or 30.0
    rt.ready_timeout   = rt.ready_timeout   or 30.0

    b = cfg.behavior
    b.min_delay_ms      = b.min_delay_ms      or 1000
    b.max_delay_ms      = b.max_delay_ms      or 2000
    b.mouse_speed_range = b.mouse_speed_range or 200
    b.path_jitter       = b.path_jitter       or 5.0

    c = cfg.combat
    c.max_engage_distance = c.max_engage_distance or 200.0
    c.hp_threshold        = c.hp_threshold        or 30
    return cfg


def validate(cfg: Config):
    acc = cfg.account
    if not acc.username:
        raise ConfigError("account.username is required")
    if not acc.password:
        raise ConfigError("account.password is required")
    if not acc.start_url:
        raise ConfigError("account.start_url is required")

    if not cfg.runtime.auto_detect_mode:
        hg = cfg.profile.hunting_ground
        if not cfg.profile.name:
            raise ConfigError("profile.name is required (or enable auto_detect_mode)")
        if not hg.map_id:
            raise ConfigError("profile.hunting_ground.map_id is required (or enable auto_detect_mode)")
        if hg.radius <= 0:
            raise ConfigError("profile.hunting_ground.radius must be positive (or enable auto_detect_mode)")

    if not 0 <= cfg.combat.hp_threshold <= 100:
        raise ConfigError("combat.hp_threshold must be between 0 and 100")
    if not 0 <= cfg.combat.mp_threshold <= 100:
        raise ConfigError("combat.mp_threshold must be between 0 and 100")

    if cfg.behavior.min_delay_ms < 0:
        raise ConfigError("behavior.min_delay_ms must be non-negative")
    if cfg.behavior.max_delay_ms < cfg.behavior.min_delay_ms:
        raise ConfigError("behavior.max_delay_ms must be >= min_delay_ms")

    rc = cfg.runtime.reconnect
    if rc.attempts < 1:
        raise ConfigError("runtime.reconnect.attempts must be at least 1")
    if rc.factor < 1:
        raise ConfigError("runtime.reconnect.factor must be >= 1")


def bridge_settings(cfg: Config) -> dict:
    """Browser options the automation bridge applies to the game page."""
    rt = cfg.runtime
    return {
        "headless":          rt.headless,
        "user_data_dir":     rt.user_data_dir,
        "viewport":          {"width": rt.viewport_width, "height": rt.viewport_height},
        "screenshot_dir":    rt.screenshot_dir,
        "mouse_speed_range": cfg.behavior.mouse_speed_range,
    }


def load_config(path: str, env: Optional[dict] = None) -> Config:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config file: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config: {e}") from e

    cfg = from_dict(data or {})
    apply_env(cfg, env)
    apply_defaults(cfg)
    validate(cfg)
    log.debug(f"[CONFIG] Loaded {path} (profile={cfg.profile.name or 'auto'})")
    return cfg
