"""imagefixtures CLI — Typer-based maintenance commands.

Provides the ``imagefixtures`` command for hashing build contexts,
pre-resolving fixtures, inspecting and pruning the archive cache, and
refreshing golden fixture images.

All output uses Rich for formatted terminal display.
"""
