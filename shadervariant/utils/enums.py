"""
The enums used in shadervariant.

.. currentmodule:: shadervariant.utils.enums

.. autosummary::
    :toctree: utils/enums

    ShaderKind

"""

from wgpu.utils import BaseEnum


__all__ = ["ShaderKind"]


class Enum(BaseEnum):
    """Enum base class for shadervariant."""


class ShaderKind(Enum):
    """The ShaderKind enum specifies the shader stages a technique pass provides."""

    vs = None  #: The vertex shader (entry point ``vs_main``).
    fs = None  #: The fragment shader (entry point ``fs_main``).
    cs = None  #: The compute shader (entry point ``cs_main``).
