"""Sandboxed UI process: renders the ball and panel and drives the host over its command surface."""
