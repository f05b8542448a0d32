"""
keel - Orquestador de despliegues multi-repo.
"""

__version__ = "1.0.0"
