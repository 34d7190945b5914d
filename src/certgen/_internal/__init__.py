"""certgen internal modules.

Nothing in this package is part of a stable API.
"""
