"""Privileged host process: owns the widget window, storage and the command server."""
