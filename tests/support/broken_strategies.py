"""
Strategy module whose own import fails.
"""

import no_such_dependency_xyz  # noqa: F401


def factory(config):
    return None
