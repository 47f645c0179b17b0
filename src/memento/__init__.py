"""opencode-memento - inject prior session context into agent compactions."""

__version__ = "0.1.0"
