"""
XChain Constants

Logging settings read from `.env` (process environment wins), and the
protocol defaults the config loader falls back to.
"""
import os
from decimal import Decimal

from dotenv import dotenv_values

# ==================================================================================
# ENVIRONMENT
# ==================================================================================
_env = {**dotenv_values(".env"), **os.environ}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'True',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# QUOTING
# ==================================================================================
# Bridge quotes stay executable for this long after they are issued
DEFAULT_QUOTE_TTL_SECONDS = 300

# Aggregated quote sets are reused for identical requests within this window.
# Must stay well below DEFAULT_QUOTE_TTL_SECONDS.
DEFAULT_QUOTE_CACHE_TTL_SECONDS = 15

# Per-adapter join timeout for the quote fan-out
DEFAULT_ADAPTER_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_QUOTE_WORKERS = 8


# ==================================================================================
# DEMO PROVIDER
# ==================================================================================
DEFAULT_DEMO_COMPLETION_DELAY = 5.0  # seconds until a demo transfer settles


# ==================================================================================
# SAGA POLLING
# ==================================================================================
DEFAULT_POLL_INITIAL_INTERVAL = 1.0
DEFAULT_POLL_MAX_INTERVAL = 30.0
DEFAULT_POLL_MULTIPLIER = 2.0
DEFAULT_POLL_TIMEOUT = 900.0  # 15 minutes, the slowest provider's average


# ==================================================================================
# SWAP ROUTING
# ==================================================================================
DEFAULT_SLIPPAGE_TOLERANCE = Decimal('0.005')  # 0.5%
DEFAULT_SWAP_FEE_BPS = 30                      # 0.30%
DEFAULT_SWAP_DEADLINE_SECONDS = 120            # 2 minutes
DEFAULT_SWAP_TIME_SECONDS = 30                 # ~2 blocks on most EVM L1s


# ==================================================================================
# SETTING WRAPPERS
# ==================================================================================
class ConfigString(str):
    """A setting string that remembers the default it replaced."""

    def __new__(cls, value, default):
        setting = super().__new__(cls, value)
        setting._default = default
        return setting

    def default(self):
        return self._default


class ConfigBool(int):
    """A boolean setting (int-backed) that remembers its default."""

    def __new__(cls, value, default):
        setting = super().__new__(cls, 1 if value else 0)
        setting._default = default
        return setting

    def default(self):
        return self._default

    def __bool__(self):
        return self != 0

    def __repr__(self):
        return repr(bool(self))

    __str__ = __repr__


_BOOL_WORDS = {"true": True, "false": False}


def _as_bool(raw):
    """True/False for the literal words (any casing), None for anything else."""
    if isinstance(raw, str):
        return _BOOL_WORDS.get(raw.strip().casefold())
    return None


def _setting(key):
    default = LOGGER_DEFAULTS[key]
    raw = _env.get(key)
    if raw is None:
        raw = default
    flag, default_flag = _as_bool(raw), _as_bool(default)
    if flag is not None:
        return ConfigBool(flag, default_flag)
    return ConfigString(raw, default)


LOG_LEVEL = _setting('LOG_LEVEL')
LOG_FORMAT = _setting('LOG_FORMAT')
LOG_DATE_FORMAT = _setting('LOG_DATE_FORMAT')
LOG_CONSOLE_HIGHLIGHTING = _setting('LOG_CONSOLE_HIGHLIGHTING')
LOG_FILE_OUTPUT = _setting('LOG_FILE_OUTPUT')
