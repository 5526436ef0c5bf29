"""Exception hierarchy for the hunting bot."""


class HuntBotError(Exception):
    """Base class for every error the bot raises on purpose."""


class ConfigError(HuntBotError):
    pass


class ActuationError(HuntBotError):
    """The sensing/actuation bridge could not read the world or run a command."""


class CombatError(HuntBotError):
    pass


class NavigationError(HuntBotError):
    pass


# Fatal: these escape run()

class LoginError(HuntBotError):
    pass


class GameNotReadyError(HuntBotError):
    pass


class ReconnectError(HuntBotError):
    def __init__(self, attempts: int):
        super().__init__(f"failed to reconnect after {attempts} attempts")
        self.attempts = attempts
