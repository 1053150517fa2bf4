"""Keyboard shortcuts blocked during an assessment."""

# Combined with Ctrl: devtools, view source, copy/paste, select all, save
FORBIDDEN_CTRL_KEYS = frozenset({"I", "J", "U", "C", "V", "A", "S"})
ESCAPE_KEY = "Escape"


def is_forbidden_key(
    key: str, ctrl: bool = False, alt: bool = False, shift: bool = False
) -> bool:
    """Check whether a key press must be blocked and logged.

    F12, Ctrl+{I,J,U,C,V,A,S}, any Ctrl+Shift combination and Alt+Tab.
    """
    if key == "F12":
        return True
    if ctrl and (shift or key.upper() in FORBIDDEN_CTRL_KEYS):
        return True
    return alt and key == "Tab"
