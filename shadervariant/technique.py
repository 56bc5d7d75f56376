"""
Techniques: descriptors that combine one or more shader passes, each with its
own template and the flags (variant units) that it supports. A technique is
described in toml::

    name = "basic"

    [[pass]]
    index = 0
    name = "main"
    source = "basic.wgsl"
    shaders = ["vs", "fs"]

    [pass.variants]
    unit = ["VERTEX_COLOR", "TEXTURE_COLOR"]

The passes are ordered by index. Asking a pass for a flag that it does not
list as a variant unit is an error, which catches typos in flag names early.
"""

import posixpath
import tomllib

import wgpu

from .utils import logger
from .utils.enums import ShaderKind
from .compiler.flags import as_flag_set
from .compiler.errors import UnknownVariantError


shader_stages = {
    ShaderKind.vs: wgpu.ShaderStage.VERTEX,
    ShaderKind.fs: wgpu.ShaderStage.FRAGMENT,
    ShaderKind.cs: wgpu.ShaderStage.COMPUTE,
}


def variant_name(flags):
    """Get the canonical name of a set of flags, e.g. 'TEXTURE_COLOR+VERTEX_COLOR'."""
    return "+".join(sorted(as_flag_set(flags)))


def _get_cache(cache):
    if cache is None:
        from . import get_default_cache

        return get_default_cache()
    return cache


class TechniquePass:
    """A single pass of a technique."""

    def __init__(self, index, name, source, shaders, units=()):
        for shader in shaders:
            if shader not in ShaderKind:
                raise ValueError(
                    f"Invalid shader kind '{shader}' in pass {index}, expected one of {ShaderKind}"
                )
        self.index = int(index)
        self.name = name
        self.source = source
        self.shaders = tuple(shaders)
        self.units = frozenset(units)

    def __repr__(self):
        return f"<TechniquePass {self.index} '{self.name}' ({self.source})>"

    @property
    def stages(self):
        """The wgpu.ShaderStage flags of the shaders in this pass."""
        stages = 0
        for shader in self.shaders:
            stages |= shader_stages[shader]
        return stages

    def check_flags(self, flags):
        """Raise UnknownVariantError if a flag is not a variant unit of this pass."""
        for flag in sorted(as_flag_set(flags)):
            if flag not in self.units:
                raise UnknownVariantError(
                    f"Variant '{flag}' does not exist in pass {self.index} ('{self.name}')",
                    self.source,
                )


class Technique:
    """A set of passes, loaded from a toml descriptor.

    Template names of the passes are relative to ``base``.
    """

    def __init__(self, name, passes, base=""):
        self.name = name
        self.base = base
        self.passes = sorted(passes, key=lambda p: p.index)

    def __repr__(self):
        return f"<Technique '{self.name}' with {len(self.passes)} passes>"

    @classmethod
    def from_string(cls, text, base=""):
        """Create a Technique from toml text."""
        d = tomllib.loads(text)
        passes = []
        for i, p in enumerate(d.get("pass", [])):
            try:
                source = p["source"]
            except KeyError:
                raise ValueError(f"Pass {i} of technique needs a 'source'.") from None
            index = p.get("index", i)
            passes.append(
                TechniquePass(
                    index,
                    p.get("name", str(index)),
                    source,
                    p.get("shaders", ["vs", "fs"]),
                    p.get("variants", {}).get("unit", []),
                )
            )
        return cls(d.get("name", ""), passes, base)

    @classmethod
    def from_file(cls, filename, base=""):
        """Create a Technique from a toml file."""
        with open(filename, "rb") as f:
            text = f.read().decode()
        return cls.from_string(text, base)

    def get_pass(self, key):
        """Get a pass by index or by name."""
        for p in self.passes:
            if p.index == key or p.name == key:
                return p
        raise KeyError(f"Technique '{self.name}' has no pass {key!r}")

    def get_template_name(self, technique_pass):
        return posixpath.join(self.base, technique_pass.source)

    def compile_pass(self, key, flags=(), cache=None):
        """Compile a pass for the given flags, using the given VariantCache
        (or the default cache, with the registered loaders).
        """
        technique_pass = self.get_pass(key)
        technique_pass.check_flags(flags)
        cache = _get_cache(cache)
        logger.debug(
            f"Compiling pass '{technique_pass.name}' of '{self.name}' for [{variant_name(flags)}]"
        )
        return cache.compile(self.get_template_name(technique_pass), flags)

    def compile_all(self, flags=(), cache=None):
        """Compile all passes for the given flags. Returns a list of CompiledVariant objects."""
        cache = _get_cache(cache)
        return [self.compile_pass(p.index, flags, cache) for p in self.passes]
