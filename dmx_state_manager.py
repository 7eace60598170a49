"""
DMX State Manager - Single Source of Truth for channel values

Holds the base value of every channel per universe plus a registry of
preview overrides. Overrides take precedence over base values in
everything this manager reports, and survive set_channels/blackout until
they are cleared.

No output loop lives here; whatever transmits frames reads get_universe().
Uses core_registry for the socket.io handle.
"""

import threading
import time

import core_registry as reg
from core.showfile.interfaces import DMXEngine
from core.showfile.models import UNIVERSE_SIZE, clamp_dmx_value

MIN_UNIVERSE = 1
MAX_UNIVERSE = 64


def _valid_universe(universe):
    """Coerce to int and range-check; None when invalid"""
    try:
        universe = int(universe)
    except (TypeError, ValueError):
        return None
    if universe < MIN_UNIVERSE or universe > MAX_UNIVERSE:
        return None
    return universe


class DMXStateManager(DMXEngine):
    """Manages DMX state for all universes - the SSOT for channel values

    Channels are 1-indexed (1-512). Values are clamped to 0-255, universes
    validated 1-64. Invalid universes/channels are ignored, not raised.
    """
    def __init__(self):
        self.universes = {}  # {universe_num: [512 base values]}
        self.overrides = {}  # {"universe:channel": value}
        self.lock = threading.Lock()
        self._last_emit_time = 0.0  # Throttle socketio emit to ~10fps

    def _ensure_universe(self, universe):
        if universe not in self.universes:
            self.universes[universe] = [0] * UNIVERSE_SIZE
        return self.universes[universe]

    # ─────────────────────────────────────────────────────────
    # Base values
    # ─────────────────────────────────────────────────────────

    def set_channels(self, universe, channels_dict):
        """Update specific channels: {channel(1-512): value}"""
        universe = _valid_universe(universe)
        if universe is None:
            return

        with self.lock:
            values = self._ensure_universe(universe)
            for ch_str, value in channels_dict.items():
                ch = int(ch_str)
                if 1 <= ch <= UNIVERSE_SIZE:
                    values[ch - 1] = clamp_dmx_value(value)

        self._emit_state(universe)

    def get_channel(self, universe, channel):
        """Get single channel value (1-indexed), override applied"""
        universe = _valid_universe(universe)
        if universe is None or not 1 <= channel <= UNIVERSE_SIZE:
            return 0
        with self.lock:
            override = self.overrides.get(f"{universe}:{channel}")
            if override is not None:
                return override
            return self._ensure_universe(universe)[channel - 1]

    def get_universe(self, universe):
        """Get a copy of the universe with overrides applied"""
        universe = _valid_universe(universe)
        if universe is None:
            return [0] * UNIVERSE_SIZE
        with self.lock:
            values = list(self._ensure_universe(universe))
            prefix = f"{universe}:"
            for key, value in self.overrides.items():
                if key.startswith(prefix):
                    values[int(key[len(prefix):]) - 1] = value
            return values

    def get_base_universe(self, universe):
        """Get a copy of the base values, ignoring overrides"""
        universe = _valid_universe(universe)
        if universe is None:
            return [0] * UNIVERSE_SIZE
        with self.lock:
            return list(self._ensure_universe(universe))

    def blackout(self, universe):
        """Set all base channels to 0 (overrides stay in place)"""
        self.set_channels(universe, {ch: 0 for ch in range(1, UNIVERSE_SIZE + 1)})

    # ─────────────────────────────────────────────────────────
    # Overrides
    # ─────────────────────────────────────────────────────────

    def set_channel_override(self, universe, channel, value):
        """Install an override; out-of-range universe or channel is ignored"""
        universe = _valid_universe(universe)
        if universe is None or not 1 <= channel <= UNIVERSE_SIZE:
            return
        with self.lock:
            self.overrides[f"{universe}:{channel}"] = clamp_dmx_value(value)
        self._emit_state(universe)

    def clear_channel_override(self, universe, channel):
        universe = _valid_universe(universe)
        if universe is None:
            return
        with self.lock:
            removed = self.overrides.pop(f"{universe}:{channel}", None)
        if removed is not None:
            self._emit_state(universe)

    def clear_all_overrides(self):
        with self.lock:
            self.overrides.clear()

    def get_overrides(self):
        """Copy of the override registry"""
        with self.lock:
            return dict(self.overrides)

    # ─────────────────────────────────────────────────────────
    # Realtime
    # ─────────────────────────────────────────────────────────

    def _emit_state(self, universe):
        # Throttle socketio emit to ~10fps
        now = time.monotonic()
        if now - self._last_emit_time <= 0.1:
            return
        self._last_emit_time = now
        if reg.socketio:
            reg.socketio.emit('dmx_state', {
                'universe': universe,
                'channels': self.get_universe(universe),
            })
