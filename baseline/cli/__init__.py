"""CLI de baseline (typer + rich)."""
