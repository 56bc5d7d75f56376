"""
Loading of shader templates and resolving of their includes.

Templates are obtained through jinja2 loaders. Applications register a loader
for a context, after which templates in that context can be referenced as
``"context/some/name.wgsl"``. An explicit loader (or a dict) can also be given
per compilation, which is what the tests do.
"""

import re
import posixpath
from collections import namedtuple

import jinja2

from ..utils import logger
from .errors import CyclicIncludeError, UnresolvedIncludeError, DirectiveSyntaxError


# Directive lines are WGSL comments, so that raw templates look like valid wgsl.
DIRECTIVE_PREFIX = "///#"

re_include = re.compile(r"^\s*" + re.escape(DIRECTIVE_PREFIX) + r"include(?:\s+(.*?))?\s*$")
re_include_path = re.compile(r'^"([^"\x00-\x1f]+)"$')


root_loader = jinja2.PrefixLoader({}, delimiter="/")

jinja_env = jinja2.Environment(loader=root_loader)


def register_shader_loader(context, loader):
    """Register a source for shader templates.

    When a template is compiled or included by a name like::

       'some_context/name.wgsl'

    The loader for "some_context" is looked up and used to load the template.
    This function allows registering a loader for your downstream package or application.

    Parameters
    ----------
    context : str
        The context of the loader.
    loader: jinja2.BaseLoader | callable | dict
        The loader to use for this context. If a function is given, it must accept one
        positional argument (the name to load).
    """
    if not (isinstance(context, str) and context and "/" not in context):
        raise TypeError("Shader load context must be a non-empty string without slashes.")
    if context in root_loader.mapping:
        raise RuntimeError(f"A loader is already registered for '{context}'.")
    root_loader.mapping[context] = as_loader(loader)


def unregister_shader_loader(context):
    """Remove the loader registered for the given context."""
    root_loader.mapping.pop(context, None)


def as_loader(loader):
    """Get a jinja2 loader from a loader, dict or callable. None means the root loader."""
    if loader is None:
        return root_loader
    elif isinstance(loader, jinja2.BaseLoader):
        return loader
    elif isinstance(loader, dict):
        return jinja2.DictLoader(loader)
    elif callable(loader):
        return jinja2.FunctionLoader(loader)
    else:
        raise TypeError(
            f"The given shader loader must be a jinja2.BaseLoader, function, or dict. Not {loader!r}"
        )


SourceLine = namedtuple("SourceLine", ["text", "template", "lineno"])
SourceLine.__doc__ = "A line of the spliced document, and where it came from."

Document = namedtuple("Document", ["name", "lines", "templates"])
Document.__doc__ = "The result of resolving includes: root name, lines, and loaded templates."


class Template:
    """A loaded shader template. Should be considered read-only."""

    def __init__(self, name, source, filename=None, uptodate=None):
        self._name = name
        self._source = source
        self._filename = filename
        self._uptodate = uptodate

    def __repr__(self):
        return f"<Template '{self._name}' at {hex(id(self))}>"

    @property
    def name(self):
        """The (normalized) name by which the template was loaded."""
        return self._name

    @property
    def source(self):
        """The raw template text."""
        return self._source

    @property
    def filename(self):
        """The filename reported by the loader, or None."""
        return self._filename

    def is_uptodate(self):
        """Whether the loader reports the source as unchanged since loading.
        Templates from loaders that cannot tell are considered up to date.
        """
        if self._uptodate is None:
            return True
        return bool(self._uptodate())

    def get_lines(self):
        """Get the template as a list of SourceLine objects (with line endings)."""
        return [
            SourceLine(text, self._name, i + 1)
            for i, text in enumerate(self._source.splitlines(keepends=True))
        ]


def normalize_name(name):
    """Normalize a template name (posix style, no redundant separators)."""
    if not (isinstance(name, str) and name):
        raise TypeError(f"Template name must be a non-empty str, not {name!r}")
    return posixpath.normpath(name.replace("\\", "/"))


def load_template(name, loader=None):
    """Load a single template by name."""
    loader = as_loader(loader)
    name = normalize_name(name)
    try:
        source, filename, uptodate = loader.get_source(jinja_env, name)
    except jinja2.TemplateNotFound:
        raise UnresolvedIncludeError(name) from None
    logger.debug(f"Loaded shader template '{name}'")
    return Template(name, source, filename, uptodate)


def resolve_includes(name, loader=None):
    """Load the given template and splice in its includes (transitively).

    Returns a Document, whose ``lines`` is a list of SourceLine objects. The
    include directives themselves are not part of the result. Each template is
    spliced once, at its first include point; later includes of it are
    skipped, like include guards in C. Raises
    CyclicIncludeError when a template includes itself, and
    UnresolvedIncludeError when a template cannot be found.
    """
    loader = as_loader(loader)
    name = normalize_name(name)
    templates = {}
    lines = []
    root = _get_template(name, loader, templates, None)
    spliced = {name}
    _splice(root, loader, (name,), templates, spliced, lines)
    return Document(name, lines, templates)


def _get_template(name, loader, templates, origin):
    try:
        return templates[name]
    except KeyError:
        pass
    try:
        template = load_template(name, loader)
    except UnresolvedIncludeError as err:
        if origin is None:
            raise
        raise UnresolvedIncludeError(err.path, origin.template, origin.lineno) from None
    templates[name] = template
    return template


def _find_include(path, origin, loader, templates):
    """Find the name of an include, trying relative to the including template first."""
    candidates = []
    base = posixpath.dirname(origin.template)
    if base and not path.startswith("/"):
        candidates.append(posixpath.normpath(posixpath.join(base, path)))
    candidates.append(normalize_name(path.lstrip("/")))

    for candidate in candidates:
        try:
            _get_template(candidate, loader, templates, None)
        except UnresolvedIncludeError:
            continue
        return candidate
    raise UnresolvedIncludeError(path, origin.template, origin.lineno)


def _splice(template, loader, chain, templates, spliced, lines):
    template_lines = template.get_lines()

    for line in template_lines:
        match = re_include.match(line.text)
        if match is None:
            lines.append(line)
            continue

        path_match = re_include_path.match(match.group(1) or "")
        if path_match is None:
            raise DirectiveSyntaxError(
                'Include needs a quoted path, e.g. ///#include "common.wgsl"',
                line.template,
                line.lineno,
            )
        name = _find_include(path_match.group(1), line, loader, templates)
        if name in chain:
            raise CyclicIncludeError(chain + (name,), line.template, line.lineno)
        elif name in spliced:
            logger.debug(f"Skipping repeated include of '{name}' in '{line.template}'")
            continue
        spliced.add(name)

        n_before = len(lines)
        _splice(templates[name], loader, chain + (name,), templates, spliced, lines)
        # Make sure the included text does not glue onto the line that follows
        if len(lines) > n_before and not lines[-1].text.endswith(("\n", "\r")):
            last = lines[-1]
            lines[-1] = last._replace(text=last.text + "\n")
