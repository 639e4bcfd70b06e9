"""
Hotkey monitoring for push-to-talk.

Monitors only report level state ("is the talk key down right now?") and
whether a quit was requested; press/release edges are derived by the
session loop. Reads never raise: a failed read counts as "not pressed".

Hotkeys are written as key names joined with ``+``, e.g. ``ctrl_r``,
``f9``, ``alt+s`` or ``ctrl_r+alt_gr``.
"""

import logging
import sys
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Hashable, Optional, Set, Tuple

logger = logging.getLogger("grok_talk.hotkeys")

_ALIASES = {
    "escape": "esc",
    "control": "ctrl",
    "return": "enter",
    "option": "alt",
    "option_r": "alt_r",
    "option_l": "alt_l",
    "command": "cmd",
    "win": "cmd",
    "super": "cmd",
    "del": "delete",
}

_SPECIAL_KEYS = {
    "ctrl", "ctrl_l", "ctrl_r",
    "alt", "alt_l", "alt_r", "alt_gr",
    "shift", "shift_l", "shift_r",
    "cmd", "cmd_l", "cmd_r",
    "space", "enter", "tab", "esc", "backspace", "delete", "insert",
    "home", "end", "page_up", "page_down", "caps_lock", "menu",
    "pause", "scroll_lock", "print_screen",
}

# A generic modifier matches either side
_MODIFIER_FAMILIES = {
    "ctrl": frozenset({"ctrl", "ctrl_l", "ctrl_r"}),
    "alt": frozenset({"alt", "alt_l", "alt_r", "alt_gr"}),
    "shift": frozenset({"shift", "shift_l", "shift_r"}),
    "cmd": frozenset({"cmd", "cmd_l", "cmd_r"}),
}


def normalize_key_name(name: str) -> str:
    """Return the canonical name for a single key.

    Raises:
        ValueError: If the name is empty or not a known key.
    """
    name = name.strip().lower()
    if not name:
        raise ValueError("Empty key name")
    name = _ALIASES.get(name, name)

    if len(name) == 1:
        return name

    # Function keys
    if name.startswith("f") and name[1:].isdigit():
        if 1 <= int(name[1:]) <= 24:
            return name
        raise ValueError(f"Unknown key: {name}")

    if name in _SPECIAL_KEYS:
        return name
    raise ValueError(f"Unknown key: {name}")


def parse_hotkey(text: str) -> Tuple[str, ...]:
    """Split a hotkey string like ``ctrl_r+alt_gr`` into canonical key names."""
    if text is None or not text.strip():
        raise ValueError("Empty hotkey")
    # "+" on its own is the plus key
    if text.strip() == "+":
        return ("+",)
    parts = tuple(normalize_key_name(p) for p in text.split("+"))
    return tuple(dict.fromkeys(parts))


def _matches(part: str, pressed: Set[str]) -> bool:
    family = _MODIFIER_FAMILIES.get(part)
    if family is None:
        return part in pressed
    return bool(family & pressed)


def combo_is_down(combo: Tuple[str, ...], pressed: Set[str]) -> bool:
    """True if every key of ``combo`` is among the ``pressed`` key names."""
    return all(_matches(part, pressed) for part in combo)


def key_name(key: Any) -> Optional[str]:
    """Canonical name of a pynput key event, or None if it has none.

    Character keys carry ``char``; special keys are ``Key`` enum members
    with a ``name``.
    """
    char = getattr(key, "char", None)
    if char:
        # Ctrl+letter arrives as a control character (Ctrl+S is "\x13")
        if len(char) == 1 and 0 < ord(char) < 27:
            return chr(ord(char) + 96)
        return char.lower()
    name = getattr(key, "name", None)
    if not name:
        return None
    try:
        return normalize_key_name(name)
    except ValueError:
        return name


def _key_identity(key: Any) -> Optional[Hashable]:
    """Physical identity of a key event; stable across modifier changes."""
    vk = getattr(key, "vk", None)
    if vk is not None:
        return ("vk", vk)
    name = key_name(key)
    return None if name is None else ("name", name)


class HotkeyMonitor(ABC):
    """Level-triggered view of the talk and quit keys."""

    def __init__(self, talk_hotkey: str, quit_hotkey: str) -> None:
        self.talk_keys: Tuple[str, ...] = parse_hotkey(talk_hotkey)
        self.quit_keys: Tuple[str, ...] = parse_hotkey(quit_hotkey)

    @abstractmethod
    def is_talk_key_down(self) -> bool:
        """Current state of the talk hotkey."""

    @abstractmethod
    def poll_quit_requested(self) -> bool:
        """True if the quit key was pressed since the last poll."""

    def drain_input(self) -> None:
        """Discard buffered keyboard input so it cannot leak into the next cycle."""

    def start(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "HotkeyMonitor":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _flush_terminal_input() -> None:
    """Drop characters typed into the controlling terminal."""
    try:
        if not sys.stdin.isatty():
            return
        import termios

        termios.tcflush(sys.stdin.fileno(), termios.TCIFLUSH)
    except (ImportError, OSError, ValueError) as e:
        logger.debug(f"Could not flush terminal input: {e}")


class PynputHotkeyMonitor(HotkeyMonitor):
    """Tracks pressed keys with a global pynput listener (macOS and Linux).

    macOS needs the Input Monitoring permission for the terminal app.
    """

    def __init__(
        self,
        talk_hotkey: str,
        quit_hotkey: str,
        listener_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        super().__init__(talk_hotkey, quit_hotkey)
        self._listener_factory = listener_factory
        self._listener: Any = None
        # identity -> name recorded at press time
        self._pressed: Dict[Hashable, str] = {}
        self._quit_requested: bool = False
        self._lock: threading.Lock = threading.Lock()

    def start(self) -> None:
        if self._listener is not None:
            return
        factory = self._listener_factory
        if factory is None:
            from pynput import keyboard

            factory = keyboard.Listener
        self._listener = factory(on_press=self._on_press, on_release=self._on_release)
        self._listener.start()
        logger.debug(f"Hotkey listener started (talk={'+'.join(self.talk_keys)}, quit={'+'.join(self.quit_keys)})")

    def close(self) -> None:
        if self._listener is None:
            return
        listener, self._listener = self._listener, None
        listener.stop()
        logger.debug("Hotkey listener stopped")

    def _on_press(self, key: Any) -> None:
        name = key_name(key)
        if name is None:
            return
        with self._lock:
            self._pressed[_key_identity(key)] = name
            if combo_is_down(self.quit_keys, set(self._pressed.values())):
                self._quit_requested = True

    def _on_release(self, key: Any) -> None:
        name = key_name(key)
        if name is None:
            return
        with self._lock:
            if self._pressed.pop(_key_identity(key), None) is not None:
                return
            stale = [ident for ident, pressed in self._pressed.items() if pressed == name]
            if not stale and len(name) == 1:
                # Unmatched character release (e.g. "1" pressed, "!" released
                # under shift): no character key can be trusted as held
                stale = [ident for ident, pressed in self._pressed.items() if len(pressed) == 1]
            for ident in stale:
                del self._pressed[ident]

    def is_talk_key_down(self) -> bool:
        with self._lock:
            return combo_is_down(self.talk_keys, set(self._pressed.values()))

    def poll_quit_requested(self) -> bool:
        with self._lock:
            requested, self._quit_requested = self._quit_requested, False
        return requested

    def drain_input(self) -> None:
        with self._lock:
            self._quit_requested = False
        _flush_terminal_input()


# Windows virtual-key codes
_VK_CODES = {
    "ctrl": 0x11, "ctrl_l": 0xA2, "ctrl_r": 0xA3,
    "alt": 0x12, "alt_l": 0xA4, "alt_r": 0xA5, "alt_gr": 0xA5,
    "shift": 0x10, "shift_l": 0xA0, "shift_r": 0xA1,
    "cmd": 0x5B, "cmd_l": 0x5B, "cmd_r": 0x5C,
    "space": 0x20, "enter": 0x0D, "tab": 0x09, "esc": 0x1B,
    "backspace": 0x08, "delete": 0x2E, "insert": 0x2D,
    "home": 0x24, "end": 0x23, "page_up": 0x21, "page_down": 0x22,
    "caps_lock": 0x14, "menu": 0x5D, "pause": 0x13,
    "scroll_lock": 0x91, "print_screen": 0x2C,
}

# Characters msvcrt reports for keys typed into the console
_CONSOLE_CHARS = {"esc": "\x1b", "enter": "\r", "space": " ", "tab": "\t", "backspace": "\x08"}


def virtual_key_code(name: str, user32: Any = None) -> int:
    """Windows virtual-key code for a canonical key name.

    Punctuation and other layout-dependent characters are looked up with
    ``VkKeyScanW`` on the active keyboard layout when ``user32`` is given.

    Raises:
        ValueError: If the key cannot be typed on this layout.
    """
    if name in _VK_CODES:
        return _VK_CODES[name]
    if name.startswith("f") and name[1:].isdigit():
        return 0x70 + int(name[1:]) - 1
    if len(name) == 1 and name.isascii() and name.isalnum():
        return ord(name.upper())
    if len(name) == 1 and user32 is not None:
        # Low byte is the vk code; -1 (0xFF) means no key produces the char
        vk = user32.VkKeyScanW(ord(name)) & 0xFF
        if vk != 0xFF:
            return vk
    raise ValueError(f"No virtual-key code for: {name}")


class WindowsHotkeyMonitor(HotkeyMonitor):
    """Polls ``GetAsyncKeyState`` for the talk key and the console for quit."""

    def __init__(
        self,
        talk_hotkey: str,
        quit_hotkey: str,
        user32: Any = None,
        console_io: Any = None,
    ) -> None:
        super().__init__(talk_hotkey, quit_hotkey)
        if user32 is None:
            import ctypes

            user32 = ctypes.windll.user32
        if console_io is None:
            import msvcrt

            console_io = msvcrt
        self._user32 = user32
        self._console = console_io
        self._talk_codes = [virtual_key_code(k, user32) for k in self.talk_keys]
        self._quit_codes = [virtual_key_code(k, user32) for k in self.quit_keys]
        # Single-key quit can be read from the console buffer
        self._quit_char: Optional[str] = None
        if len(self.quit_keys) == 1:
            key = self.quit_keys[0]
            self._quit_char = _CONSOLE_CHARS.get(key, key if len(key) == 1 else None)

    def _key_is_down(self, vk: int) -> bool:
        try:
            return bool(self._user32.GetAsyncKeyState(vk) & 0x8000)
        except Exception as e:
            logger.debug(f"GetAsyncKeyState failed for {vk:#x}: {e}")
            return False

    def is_talk_key_down(self) -> bool:
        return all(self._key_is_down(vk) for vk in self._talk_codes)

    def poll_quit_requested(self) -> bool:
        if self._quit_char is None:
            return all(self._key_is_down(vk) for vk in self._quit_codes)
        requested = False
        try:
            while self._console.kbhit():
                ch = self._console.getwch()
                # Special keys arrive as two characters
                if ch in ("\x00", "\xe0"):
                    self._console.getwch()
                    continue
                if ch.lower() == self._quit_char:
                    requested = True
        except Exception as e:
            logger.debug(f"Console read failed: {e}")
        return requested

    def drain_input(self) -> None:
        try:
            while self._console.kbhit():
                self._console.getwch()
        except Exception as e:
            logger.debug(f"Console drain failed: {e}")


def create_hotkey_monitor(talk_hotkey: str, quit_hotkey: str) -> HotkeyMonitor:
    """Monitor implementation for the running platform."""
    if sys.platform == "win32":
        return WindowsHotkeyMonitor(talk_hotkey, quit_hotkey)
    return PynputHotkeyMonitor(talk_hotkey, quit_hotkey)
