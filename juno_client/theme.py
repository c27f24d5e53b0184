"""Colour themes for the ball and panel."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

DEFAULT_THEME = "dark"

BALL_GRADIENT: Tuple[str, str] = ("#667eea", "#764ba2")


@dataclass(frozen=True)
class Theme:
    name: str
    label: str
    background: str
    surface: str
    border: str
    text: str
    muted: str
    accent: str


THEMES: Dict[str, Theme] = {
    "light": Theme("light", "Light", "#f8fafc", "#e2e8f0", "#cbd5e1", "#1e293b", "#64748b", "#0ea5e9"),
    "dark": Theme("dark", "Dark", "#0f172a", "#1e293b", "#334155", "#f8fafc", "#94a3b8", "#38bdf8"),
    "midnight": Theme("midnight", "Midnight", "#000000", "#0a0a0a", "#1f1f1f", "#e5e5e5", "#737373", "#a3a3a3"),
    "nebula": Theme("nebula", "Nebula", "#1e1b4b", "#312e81", "#4c1d95", "#f5f3ff", "#c4b5fd", "#c084fc"),
}


def resolve_theme(name: Any) -> Theme:
    """Return the named theme, or the default for anything unknown."""
    if isinstance(name, str):
        theme = THEMES.get(name.strip().lower())
        if theme is not None:
            return theme
    return THEMES[DEFAULT_THEME]


def stylesheet(theme: Theme) -> str:
    return f"""
QWidget#JunoPanel {{
    background-color: {theme.background};
    border: 1px solid {theme.border};
    border-radius: 16px;
}}
QWidget#JunoPanel QLabel, QWidget#JunoPanel QCheckBox {{
    color: {theme.text};
}}
QWidget#JunoHeader {{
    background-color: {theme.surface};
    border-top-left-radius: 16px;
    border-top-right-radius: 16px;
}}
QLabel#JunoTitle {{
    font-weight: 600;
    font-size: 15px;
}}
QLabel#JunoMuted {{
    color: {theme.muted};
}}
QLineEdit, QPlainTextEdit, QComboBox, QDateTimeEdit, QListWidget {{
    background-color: {theme.surface};
    color: {theme.text};
    border: 1px solid {theme.border};
    border-radius: 6px;
    padding: 4px;
}}
QPushButton {{
    background-color: {theme.surface};
    color: {theme.text};
    border: 1px solid {theme.border};
    border-radius: 6px;
    padding: 4px 10px;
}}
QPushButton:hover {{
    border-color: {theme.accent};
}}
QTabWidget::pane {{
    border: none;
}}
QTabBar::tab {{
    background: transparent;
    color: {theme.muted};
    padding: 6px 14px;
}}
QTabBar::tab:selected {{
    color: {theme.accent};
    border-bottom: 2px solid {theme.accent};
}}
"""
