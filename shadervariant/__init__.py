"""Shadervariant: compile templated wgsl shaders into variants."""

# ruff: noqa: F401

import threading

from ._version import __version__, version_info
from . import utils
from .utils import enums, logger
from .utils.enums import ShaderKind

from .compiler import (
    ShaderCompileError,
    CyclicIncludeError,
    UnresolvedIncludeError,
    DirectiveSyntaxError,
    UnbalancedConditionalError,
    UnknownScopeError,
    CounterSpecConflictError,
    DuplicateSlotError,
    UnknownVariantError,
    register_shader_loader,
    unregister_shader_loader,
    load_template,
    resolve_includes,
    Template,
    parse_directives,
    parse_expression,
    CounterSpec,
    evaluate,
    select_nodes,
    SymbolTable,
    SlotAllocator,
    ReflectionTable,
    AttributeSlot,
    ResourceSlot,
    ShaderCompiler,
    CompiledVariant,
    VariantCache,
)
from .technique import Technique, TechniquePass, variant_name


_default_cache = None
_default_cache_lock = threading.Lock()


def get_default_cache():
    """Get the VariantCache that is used by ``compile()``. It uses the
    loaders registered with ``register_shader_loader()``.
    """
    global _default_cache
    with _default_cache_lock:
        if _default_cache is None:
            _default_cache = VariantCache()
        return _default_cache


def compile(template, flags=()):
    """Compile the template with the given name for the given flags.

    The template (and its includes) are obtained via the registered loaders,
    and the result is cached. Returns a CompiledVariant.
    """
    return get_default_cache().compile(template, flags)
