"""
This subpackage implements the shader variant compiler. Basically this is where
templated wgsl code is loaded, spliced, pruned, allocated and resolved.


## A note about shader variants

A shader often comes in many flavours: with or without vertex colors, with or
without a texture, with or without alpha testing. Writing each flavour by hand
leads to lots of duplicate code, and keeping the locations and bindings of
all flavours consistent is tedious and error prone.

The approach taken here is to write one template per shader, in which code is
made conditional on feature flags, and in which attributes and resources are
annotated with a named scope rather than a concrete slot. Compiling a template
for a set of flags selects the code for those flags, and only then hands out
slots to the code that survived. That way a disabled feature never leaves a
hole in the slot numbering.

Templates are wgsl with directives in comments (``///#if FLAG``), so editors
still see something that looks like wgsl. Templates are loaded via jinja2
loaders, which can be registered per context with ``register_shader_loader()``.
"""

from .errors import (  # noqa
    ShaderCompileError,
    CyclicIncludeError,
    UnresolvedIncludeError,
    DirectiveSyntaxError,
    UnbalancedConditionalError,
    UnknownScopeError,
    CounterSpecConflictError,
    DuplicateSlotError,
    UnknownVariantError,
)
from .loading import (  # noqa
    register_shader_loader,
    unregister_shader_loader,
    load_template,
    resolve_includes,
    Template,
)
from .parser import parse_directives, parse_expression, CounterSpec  # noqa
from .flags import evaluate, select_nodes  # noqa
from .allocator import SymbolTable, SlotAllocator  # noqa
from .reflection import ReflectionTable, AttributeSlot, ResourceSlot  # noqa
from .base import ShaderCompiler, CompiledVariant  # noqa
from .cache import VariantCache  # noqa
