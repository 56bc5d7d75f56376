"""
The errors raised while compiling a shader variant. All of them derive from
``ShaderCompileError`` and carry the template name and line number (when
known), so that the offending spot can be found in the template source.
"""


class ShaderCompileError(ValueError):
    """Base class for errors that prevent a template from being compiled."""

    kind = "CompileError"

    def __init__(self, message, template=None, lineno=None):
        self.message = message
        self.template = template
        self.lineno = lineno
        super().__init__(self._format())

    def _format(self):
        if self.template is None:
            return self.message
        elif self.lineno is None:
            return f"{self.message} (in {self.template})"
        else:
            return f"{self.message} (in {self.template}, line {self.lineno})"


class CyclicIncludeError(ShaderCompileError):
    """A template (transitively) includes itself."""

    kind = "CyclicInclude"

    def __init__(self, chain, template=None, lineno=None):
        self.chain = tuple(chain)
        message = "Cyclic include: " + " -> ".join(self.chain)
        super().__init__(message, template, lineno)


class UnresolvedIncludeError(ShaderCompileError):
    """A template or include could not be found via the loader."""

    kind = "UnresolvedInclude"

    def __init__(self, path, template=None, lineno=None):
        self.path = path
        super().__init__(f"Cannot find shader template '{path}'", template, lineno)


class DirectiveSyntaxError(ShaderCompileError):
    """A directive line is malformed."""

    kind = "DirectiveSyntaxError"


class UnbalancedConditionalError(ShaderCompileError):
    """An if/elseif/else/endif block is not properly nested."""

    kind = "UnbalancedConditional"


class UnknownScopeError(ShaderCompileError):
    """A placeholder or annotation refers to a name that was not declared."""

    kind = "UnknownScopeReference"

    def __init__(self, scope, template=None, lineno=None, message=None):
        self.scope = scope
        message = message or f"Reference to undeclared scope '{scope}'"
        super().__init__(message, template, lineno)


class CounterSpecConflictError(ShaderCompileError):
    """The same scope is declared twice with incompatible values."""

    kind = "CounterSpecConflict"


class DuplicateSlotError(ShaderCompileError):
    """A slot or a name is assigned twice in one scope."""

    kind = "DuplicateSlotAssignment"


class UnknownVariantError(ShaderCompileError):
    """A technique pass was asked for a flag it does not declare."""

    kind = "UnknownVariant"
