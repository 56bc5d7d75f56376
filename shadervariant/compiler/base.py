"""
Implements the compiler that turns a template and a set of flags into a
compiled variant: the final wgsl code plus a reflection table.

The steps are:

* Load the template and splice its includes (loading.py).
* Parse the directives into a tree of nodes (parser.py).
* Select the nodes that survive for the given flags (flags.py).
* Declare, allocate and substitute over the surviving nodes (resolve.py).
"""

import os
import sys

from ..utils import logger, hash_from_value
from .loading import as_loader, resolve_includes, SourceLine
from .parser import Decl, parse_directives
from .flags import as_flag_set, select_nodes, collect_flags
from .resolve import resolve_nodes
from .errors import ShaderCompileError


PRINT_CODE_ON_ERROR = os.environ.get(
    "SHADERVARIANT_PRINT_CODE_ON_ERROR", "0"
).lower() not in ["false", "0"]


class CompiledVariant:
    """The result of compiling a template for a specific set of flags.
    Should be considered read-only.
    """

    def __init__(self, template, flags, code, reflection, templates=()):
        self._template = template
        self._flags = frozenset(flags)
        self._code = code
        self._reflection = reflection
        self._templates = tuple(templates)
        self._hash = hash_from_value([template, sorted(self._flags), code])

    def __repr__(self):
        flags = "+".join(sorted(self._flags)) or "-"
        return f"<CompiledVariant '{self._template}' [{flags}] at {hex(id(self))}>"

    @property
    def template(self):
        """The name of the template that this variant was compiled from."""
        return self._template

    @property
    def flags(self):
        """The frozenset of flags that this variant was compiled for."""
        return self._flags

    @property
    def code(self):
        """The final wgsl code, with all directives, placeholders and markers resolved."""
        return self._code

    @property
    def reflection(self):
        """The ReflectionTable that describes the slots of this variant."""
        return self._reflection

    @property
    def templates(self):
        """The Template objects (the root and its includes) that were used."""
        return self._templates

    @property
    def hash(self):
        """A hash of the template name, flags and code."""
        return self._hash


class ShaderCompiler:
    """Compiles shader templates into variants. Does not cache; see VariantCache.

    Parameters
    ----------
    loader : jinja2.BaseLoader | dict | callable | None
        The loader to obtain templates with. Default None means the loaders
        registered with ``register_shader_loader()``.
    defines : dict | None
        Names to declare in every template, mapping to a bool, int, or None
        (a plain flag).
    """

    def __init__(self, loader=None, defines=None):
        self._loader = as_loader(loader)
        self._defines = {}
        for name, value in (defines or {}).items():
            if value is not None and not isinstance(value, (bool, int)):
                raise TypeError(f"Define '{name}' must be None, bool or int, not {value!r}")
            self._defines[name] = value

    @property
    def loader(self):
        """The jinja2 loader used to load templates."""
        return self._loader

    @property
    def defines(self):
        """A copy of the dict of names declared in every template."""
        return dict(self._defines)

    def _get_define_nodes(self):
        line = SourceLine("", "<defines>", None)
        return [Decl(name, self._defines[name], line) for name in sorted(self._defines)]

    def load(self, template):
        """Load the template and its includes, returning a Document."""
        return resolve_includes(template, self._loader)

    def parse(self, template):
        """Load and parse the template, returning a list of nodes."""
        return parse_directives(self.load(template).lines)

    def get_flag_names(self, template):
        """Get the sorted names of the flags that the template's conditions refer to."""
        return collect_flags(self.parse(template))

    def compile(self, template, flags=()):
        """Compile the template for the given flags, returning a CompiledVariant."""
        flags = as_flag_set(flags)
        document = self.load(template)
        return self.compile_document(document, flags)

    def compile_document(self, document, flags=()):
        """Compile an already loaded Document for the given flags."""
        flags = as_flag_set(flags)
        logger.debug(
            f"Compiling '{document.name}' for flags [{'+'.join(sorted(flags))}]"
        )
        try:
            nodes = self._get_define_nodes() + parse_directives(document.lines)
            surviving = select_nodes(nodes, flags)
            code, reflection = resolve_nodes(surviving)
        except ShaderCompileError:
            # Since the spliced document can be large, developers must
            # enable this with SHADERVARIANT_PRINT_CODE_ON_ERROR
            if PRINT_CODE_ON_ERROR:
                code_with_line_numbers = "".join(
                    f"{i + 1:5d} {line.template}:{line.lineno}: {line.text}"
                    for i, line in enumerate(document.lines)
                )
                print(code_with_line_numbers, file=sys.stderr)
            raise

        logger.debug(
            f"Compiled '{document.name}' for flags [{'+'.join(sorted(flags))}]: "
            f"{len(code.splitlines())} lines"
        )
        return CompiledVariant(
            document.name, flags, code, reflection, document.templates.values()
        )
