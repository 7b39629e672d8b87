"""
Accelerator parsing and formatting.

An accelerator is a modifier+key chord written as a lowercase, '+'-joined
string such as "mod+shift+x". "mod" stands for the platform's primary
modifier (Cmd on macOS, Ctrl elsewhere). This module turns user or legacy
input into that canonical form and converts it for the pynput listener.
"""

import sys
from typing import FrozenSet, List, Optional, Tuple

# Canonical modifier order used when rebuilding an accelerator string
MODIFIER_ORDER: Tuple[str, ...] = ('mod', 'ctrl', 'alt', 'shift', 'cmd')
MODIFIERS: FrozenSet[str] = frozenset(MODIFIER_ORDER)

ESCAPE = "escape"

NAMED_KEYS: FrozenSet[str] = frozenset(
    {
        'escape', 'tab', 'space', 'enter', 'backspace', 'delete',
        'home', 'end', 'page_up', 'page_down', 'up', 'down', 'left', 'right',
    }
    | {f'f{i}' for i in range(1, 21)}
)

_ALIASES = {
    # Electron style modifiers
    'commandorcontrol': 'mod',
    'cmdorctrl': 'mod',
    'command': 'cmd',
    'meta': 'cmd',
    'super': 'cmd',
    'win': 'cmd',
    'control': 'ctrl',
    'option': 'alt',
    # Named keys
    'esc': 'escape',
    'return': 'enter',
    'spacebar': 'space',
    'del': 'delete',
    'pageup': 'page_up',
    'pagedown': 'page_down',
    'arrowup': 'up',
    'arrowdown': 'down',
    'arrowleft': 'left',
    'arrowright': 'right',
}

_DISPLAY_NAMES = {
    'cmd': 'Cmd',
    'ctrl': 'Ctrl',
    'alt': 'Alt',
    'shift': 'Shift',
    'escape': 'Esc',
    'page_up': 'PageUp',
    'page_down': 'PageDown',
}

# Accelerators the user may never rebind onto
PROTECTED_ACCELERATORS: FrozenSet[str] = frozenset({
    'mod+c',            # Copy
    'mod+v',            # Paste
    'mod+x',            # Cut
    'mod+a',            # Select all
    'mod+z',            # Undo
    'mod+shift+z',      # Redo (macOS)
    'mod+y',            # Redo (Windows/Linux)
    'mod+s',            # Save
    'mod+w',            # Close window
    'mod+q',            # Quit
    'mod+n',            # New
    'mod+o',            # Open
    'mod+p',            # Print
    'mod+t',            # New tab
    'mod+tab',          # Switch tabs
    'mod+space',        # Spotlight/Search
    'mod+shift+space',  # Alternative search
    ESCAPE,             # Reserved for dismissing the overlay
})


class AcceleratorError(ValueError):
    """Raised when an accelerator string cannot be parsed."""
    pass


def primary_modifier(platform: Optional[str] = None) -> str:
    """Return the concrete modifier that "mod" stands for on a platform."""
    platform = platform or sys.platform
    return 'cmd' if platform == 'darwin' else 'ctrl'


def _split(accelerator: str) -> Tuple[List[str], str]:
    if not accelerator or not isinstance(accelerator, str):
        raise AcceleratorError("Accelerator must be a non-empty string")

    parts = [part.strip().lower() for part in accelerator.split('+')]
    if any(not part for part in parts):
        raise AcceleratorError(f"Malformed accelerator: {accelerator!r}")

    parts = [_ALIASES.get(part, part) for part in parts]
    key = parts[-1]
    modifiers = parts[:-1]

    invalid = [mod for mod in modifiers if mod not in MODIFIERS]
    if invalid:
        raise AcceleratorError(f"Invalid modifiers: {', '.join(invalid)}")

    if key in MODIFIERS:
        raise AcceleratorError("Accelerator must end with a non-modifier key")

    if len(key) == 1:
        if not key.isprintable() or key.isspace():
            raise AcceleratorError(f"Invalid key: {key!r}")
    elif key not in NAMED_KEYS:
        raise AcceleratorError(f"Unknown key: {key!r}")

    return modifiers, key


def normalize_accelerator(accelerator: str) -> str:
    """
    Parse an accelerator and return its canonical form.

    Args:
        accelerator: String like "CommandOrControl+Shift+X" or "mod+shift+x"

    Returns:
        Canonical accelerator such as "mod+shift+x"

    Raises:
        AcceleratorError: If the string is malformed
    """
    modifiers, key = _split(accelerator)
    ordered = sorted(set(modifiers), key=MODIFIER_ORDER.index)
    return '+'.join(ordered + [key])


def resolve_accelerator(accelerator: str, platform: Optional[str] = None) -> str:
    """
    Canonical form with "mod" replaced by the platform's concrete modifier.

    Two accelerators name the same key chord exactly when their resolved
    forms are equal: on Linux "mod+shift+x" and "ctrl+shift+x" both resolve
    to "ctrl+shift+x".

    Raises:
        AcceleratorError: If the string is malformed
    """
    modifiers, key = _split(accelerator)
    concrete = {primary_modifier(platform) if mod == 'mod' else mod for mod in modifiers}
    ordered = sorted(concrete, key=MODIFIER_ORDER.index)
    return '+'.join(ordered + [key])


def has_modifier(accelerator: str) -> bool:
    """Check whether a canonical accelerator includes at least one modifier."""
    return '+' in accelerator


def is_protected(accelerator: str, platform: Optional[str] = None) -> bool:
    """Check whether an accelerator resolves to a protected key chord."""
    try:
        resolved = resolve_accelerator(accelerator, platform)
    except AcceleratorError:
        return False
    return resolved in {resolve_accelerator(protected, platform) for protected in PROTECTED_ACCELERATORS}


def to_pynput_hotkey(accelerator: str, platform: Optional[str] = None) -> str:
    """
    Convert an accelerator into pynput's hotkey notation.

    "mod+shift+x" becomes "<cmd>+<shift>+x" on macOS and "<ctrl>+<shift>+x"
    elsewhere; named keys are wrapped in angle brackets ("escape" -> "<esc>").
    """
    modifiers, key = _split(accelerator)
    concrete = []
    for mod in sorted(set(modifiers), key=MODIFIER_ORDER.index):
        name = primary_modifier(platform) if mod == 'mod' else mod
        token = f'<{name}>'
        if token not in concrete:
            concrete.append(token)

    if key == ESCAPE:
        key_token = '<esc>'
    elif len(key) > 1:
        key_token = f'<{key}>'
    else:
        key_token = key

    return '+'.join(concrete + [key_token])


def format_accelerator(accelerator: str, platform: Optional[str] = None) -> str:
    """Format an accelerator for display, e.g. "Cmd+Shift+X"."""
    try:
        modifiers, key = _split(accelerator)
    except AcceleratorError:
        return accelerator

    labels = []
    for mod in sorted(set(modifiers), key=MODIFIER_ORDER.index):
        name = primary_modifier(platform) if mod == 'mod' else mod
        label = _DISPLAY_NAMES[name]
        if label not in labels:
            labels.append(label)

    if key in _DISPLAY_NAMES:
        key_label = _DISPLAY_NAMES[key]
    elif len(key) == 1 or key.startswith('f'):
        key_label = key.upper()
    else:
        key_label = key.title()

    return '+'.join(labels + [key_label])
