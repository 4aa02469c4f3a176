"""
Features de l'adaptateur (logique sans I/O).
"""
