"""
Punto de entrada: python -m baseline

Misma app que el script `baseline` (baseline.cli.app).
"""
from baseline.cli.app import app

if __name__ == "__main__":
    app()
