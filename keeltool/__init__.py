"""
keeltool - capa de herramientas de keel: CLI, plugins incluidos, fixes, renderers y secret stores.
"""
