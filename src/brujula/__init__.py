"""
Brújula: scoring y ranking de listings inmobiliarios.

Combina compatibilidad con preferencias, comportamiento observado y
señales temporales en un score explicado, y ajusta los pesos de la
combinación a partir de los outcomes.
"""

__version__ = "0.1.0"
