"""Translate PC keyboard scan codes into characters."""

from __future__ import annotations

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _c(x: str) -> int:
    return (ord(x) - ord("@")) & 0xFF


_SHIFTCODE = {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT}
_TOGGLECODE = {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK}

_SPECIAL = {
    0xC8: KEY_UP, 0xD0: KEY_DN, 0xC9: KEY_PGUP, 0xD1: KEY_PGDN,
    0xCB: KEY_LF, 0xCD: KEY_RT, 0x97: KEY_HOME, 0xCF: KEY_END,
    0xD2: KEY_INS, 0xD3: KEY_DEL,
}

_NO = "\x00"
_KEYPAD = _NO * 13 + "789-456+1230." + _NO * 4


def _table(text: str, extra: dict) -> list[int]:
    table = [0] * 256
    for i, ch in enumerate(text):
        table[i] = ord(ch)
    for code, value in {**_SPECIAL, **extra}.items():
        table[code] = value
    return table


_NORMAL = _table(
    _NO + "\x1b1234567890-=\b\tqwertyuiop[]\n" + _NO + "asdfghjkl;'`" + _NO
    + "\\zxcvbnm,./" + _NO + "*" + _NO + " " + _KEYPAD,
    {0x9C: ord("\n"), 0xB5: ord("/")},
)
_SHIFTED = _table(
    _NO + "\x1b!@#$%^&*()_+\b\tQWERTYUIOP{}\n" + _NO + "ASDFGHJKL:\"~" + _NO
    + "|ZXCVBNM<>?" + _NO + "*" + _NO + " " + _KEYPAD,
    {0x9C: ord("\n"), 0xB5: ord("/")},
)
_CTL = _table("", {0x9C: ord("\r"), 0xB5: _c("/")})
for _i, _v in enumerate(
    [_c(x) for x in "QWERTYUIOP"] + [0, 0, ord("\r"), 0]
    + [_c(x) for x in "ASDFGHJKL"] + [0, 0, 0, 0]
    + [_c(x) for x in "\\ZXCVBNM"] + [0, 0, _c("/")],
    start=0x10,
):
    _CTL[_i] = _v

_CHARCODE = (_NORMAL, _SHIFTED, _CTL, _CTL)


class Keyboard:
    """Tracks modifier state across scan codes."""

    def __init__(self):
        self.shift = 0

    def _getc(self, data: int) -> int:
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            data = data if self.shift & E0ESC else data & 0x7F
            self.shift &= ~(_SHIFTCODE.get(data, 0) | E0ESC)
            return 0
        if self.shift & E0ESC:
            data |= 0x80
            self.shift &= ~E0ESC
        self.shift |= _SHIFTCODE.get(data, 0)
        self.shift ^= _TOGGLECODE.get(data, 0)
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c -= 32
            elif ord("A") <= c <= ord("Z"):
                c += 32
        return c

    def feed(self, data) -> list[int]:
        """Process scan codes; return the character codes they produce."""
        return [c for c in (self._getc(b & 0xFF) for b in data) if c]