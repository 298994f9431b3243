"""
Baseline: motor de convergencia declarativa de hosts.

Declaración → grafo → plan → validación de firewall → ejecución → reporte.
"""

__version__ = "0.1.0"
