"""
Utility functions for shadervariant.

.. currentmodule:: shadervariant.utils

.. autosummary::
    :toctree: utils/

    enums
    hash_from_value

"""

import os
import json
import logging

from . import enums  # noqa: F401


logger = logging.getLogger("shadervariant")


def _set_log_level():
    # Set default level
    logger.setLevel(logging.WARN)
    # Set user-specified level
    level = os.getenv("SHADERVARIANT_LOG_LEVEL", "")
    if level:
        try:
            if level.isnumeric():
                logger.setLevel(int(level))
            else:
                logger.setLevel(level.upper())
        except Exception:
            logger.warning(f"Invalid shadervariant log level: {level}")


_set_log_level()


jsonencoder = json.JSONEncoder(sort_keys=True)


def hash_from_value(value):
    """Simple way to create a hash from a (possibly composite) object.
    Assumes JSON encodable objects.
    """
    # Encode the value to string using json. The JSON encoder is so fast that
    # its hard to come up with something that can serialze to str faster.
    s = jsonencoder.encode(value)

    # Return hash (an int). For debugging purposes it can be helpul to return s instead.
    return hash(s)
