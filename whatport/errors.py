"""Exception hierarchy shared by the whatport pipeline.

Each component raises its own subclass; ``main`` only needs to catch
``WhatportError`` to turn a fatal failure into a non-zero exit.
"""


class WhatportError(Exception):
    """Base class for all fatal whatport errors."""
