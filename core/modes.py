"""
    Permission mode parsing and formatting.

    Rule files and the command line describe modes in whatever notation the
    operator is used to, so parse_mode() accepts all of:

      - integers that spell octal digits (TOML `expected_mode = 644`)
      - octal strings: "640", "0640", "0o640"
      - long symbolic strings as printed by `ls -l`: "rw-r-----", "rwsr-xr-x"
      - short symbolic assignments as taken by chmod: "u=rw,g=r,o=", "a+r"

    Everything is converted to a plain int (e.g. 0o640). Anything else raises
    ModeParseError rather than being guessed at.
"""
from __future__ import annotations

from core.errors import ModeParseError

MAX_MODE = 0o7777
PERMISSION_MASK = 0o777
SPECIAL_BITS = 0o7000
WORLD_WRITE = 0o002

_OCTAL_DIGITS = set("01234567")

# (read, write, execute) bits for user / group / other
_CLASS_BITS = (
    (0o400, 0o200, 0o100),
    (0o040, 0o020, 0o010),
    (0o004, 0o002, 0o001),
)
# setuid / setgid / sticky live "behind" the execute slot of each class
_CLASS_SPECIAL = (0o4000, 0o2000, 0o1000)
_CLASS_INDEX = {"u": (0,), "g": (1,), "o": (2,), "a": (0, 1, 2)}


def parse_mode(value: int | str) -> int:
    """Convert a mode in any supported notation into an int."""
    if isinstance(value, bool):
        raise ModeParseError(f"invalid mode: {value!r}")

    if isinstance(value, int):
        digits = str(value)
        if value < 0 or not set(digits) <= _OCTAL_DIGITS:
            raise ModeParseError(f"invalid octal mode: {value}")
        return _check_range(int(digits, 8), value)

    if not isinstance(value, str):
        raise ModeParseError(f"invalid mode type: {type(value).__name__}")

    text = value.strip()
    if not text:
        raise ModeParseError("empty mode string")

    octal = text[2:] if text.lower().startswith("0o") else text
    if octal and set(octal) <= _OCTAL_DIGITS:
        return _check_range(int(octal, 8), value)

    if len(text) == 9 and set(text) <= set("rwxsStT-"):
        return _parse_long_symbolic(text)

    return _parse_short_symbolic(text)


def format_mode(mode: int) -> str:
    """Render a mode the way chmod takes it: octal digits, no prefix."""
    return format(mode, "o")


def is_world_writable(mode: int) -> bool:
    return bool(mode & WORLD_WRITE)


def mode_mask(expected_mode: int) -> int:
    """
    Bits that take part in a comparison against expected_mode.

    Special bits are only compared when the rule mentions one of them;
    otherwise a rule of 755 would flag every setgid directory.
    """
    return MAX_MODE if expected_mode & SPECIAL_BITS else PERMISSION_MASK


def _check_range(mode: int, original: int | str) -> int:
    if mode > MAX_MODE:
        raise ModeParseError(f"mode out of range (max 7777): {original!r}")
    return mode


def _parse_long_symbolic(text: str) -> int:
    mode = 0
    for idx in range(3):
        r, w, x = text[idx * 3: idx * 3 + 3]
        read_bit, write_bit, exec_bit = _CLASS_BITS[idx]

        if r == "r":
            mode |= read_bit
        elif r != "-":
            raise ModeParseError(f"invalid symbolic mode: {text!r}")

        if w == "w":
            mode |= write_bit
        elif w != "-":
            raise ModeParseError(f"invalid symbolic mode: {text!r}")

        special_char = "t" if idx == 2 else "s"
        if x == "x":
            mode |= exec_bit
        elif x == special_char:
            mode |= exec_bit | _CLASS_SPECIAL[idx]
        elif x == special_char.upper():
            mode |= _CLASS_SPECIAL[idx]
        elif x != "-":
            raise ModeParseError(f"invalid symbolic mode: {text!r}")
    return mode


def _parse_short_symbolic(text: str) -> int:
    # Start from an empty mode and apply each clause left to right.
    classes = [0, 0, 0]
    applied = False

    for clause in text.split(","):
        clause = clause.strip()
        if not clause:
            continue

        op_at = next((i for i, c in enumerate(clause) if c in "=+-"), None)
        if op_at is None:
            raise ModeParseError(f"missing operator in {clause!r}")
        who, op, perms = clause[:op_at] or "a", clause[op_at], clause[op_at + 1:]

        bits = 0
        for c in perms:
            if c == "r":
                bits |= 0b100
            elif c == "w":
                bits |= 0b010
            elif c == "x":
                bits |= 0b001
            else:
                raise ModeParseError(f"invalid permission character {c!r} in {clause!r}")

        for w in who:
            if w not in _CLASS_INDEX:
                raise ModeParseError(f"invalid class {w!r} in {clause!r}")
            for idx in _CLASS_INDEX[w]:
                if op == "=":
                    classes[idx] = bits
                elif op == "+":
                    classes[idx] |= bits
                else:
                    classes[idx] &= ~bits
        applied = True

    if not applied:
        raise ModeParseError(f"invalid mode format: {text!r}")
    return (classes[0] << 6) | (classes[1] << 3) | classes[2]
