"""
A cache for compiled variants, safe to use from multiple threads.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor

from ..utils import logger
from .base import ShaderCompiler
from .flags import as_flag_set
from .loading import normalize_name


class VariantCache:
    """A cache of compiled variants, keyed by (template name, flag set).

    Each key is compiled at most once at a time: when multiple threads ask for
    the same variant, the first one compiles it and the others wait for (and
    share) its result. Different keys compile in parallel. When a compilation
    fails, all waiting threads get the error, and the key is not cached, so
    that a later call tries again.

    Entries are only removed by ``invalidate()`` and ``invalidate_stale()``.
    """

    def __init__(self, compiler=None):
        if compiler is None:
            compiler = ShaderCompiler()
        elif not isinstance(compiler, ShaderCompiler):
            raise TypeError(f"VariantCache needs a ShaderCompiler, not {compiler!r}")
        self._compiler = compiler
        self._lock = threading.Lock()
        self._futures = {}  # key -> Future
        self.hits = 0
        self.misses = 0

    @property
    def compiler(self):
        """The ShaderCompiler used to compile variants."""
        return self._compiler

    def get_key(self, template, flags=()):
        """Get the cache key for the given template and flags."""
        return normalize_name(template), as_flag_set(flags)

    def get_stats(self):
        """Get the number of cached variants, the number of hits, and the number of misses."""
        with self._lock:
            count = sum(
                1
                for future in self._futures.values()
                if future.done() and future.exception() is None
            )
        return count, self.hits, self.misses

    def compile(self, template, flags=()):
        """Get the CompiledVariant for the given template and flags,
        compiling it if it is not in the cache.
        """
        key = self.get_key(template, flags)

        with self._lock:
            future = self._futures.get(key)
            if future is None:
                future = self._futures[key] = Future()
                is_owner = True
                self.misses += 1
            else:
                is_owner = False
                self.hits += 1

        name, flags = key
        if not is_owner:
            logger.debug(f"Variant cache hit for '{name}' [{'+'.join(sorted(flags))}]")
            # Wait for the thread that compiles this key. Re-raises its error.
            return future.result()

        logger.debug(f"Variant cache miss for '{name}' [{'+'.join(sorted(flags))}]")
        try:
            variant = self._compiler.compile(*key)
        except BaseException as err:
            with self._lock:
                if self._futures.get(key) is future:
                    del self._futures[key]
            future.set_exception(err)
            raise
        future.set_result(variant)
        return variant

    def preload(self, template, flag_sets, max_workers=None):
        """Compile the template for each of the given flag sets, using a pool
        of threads. Returns a list of CompiledVariant objects in the same order.
        """
        flag_sets = [as_flag_set(flags) for flags in flag_sets]
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(self.compile, template, flags) for flags in flag_sets
            ]
            return [future.result() for future in futures]

    def invalidate(self, template=None):
        """Remove all entries, or only those for the given template name.

        Entries of variants that include the template are removed too.
        """
        name = None if template is None else normalize_name(template)
        with self._lock:
            for key, future in list(self._futures.items()):
                if name is None or key[0] == name:
                    del self._futures[key]
                elif future.done() and future.exception() is None:
                    if any(t.name == name for t in future.result().templates):
                        del self._futures[key]

    def invalidate_stale(self):
        """Remove the entries of which a template (or one of its includes)
        has changed, as reported by the loader. Returns the removed keys.
        """
        removed = []
        with self._lock:
            for key, future in list(self._futures.items()):
                if not future.done() or future.exception() is not None:
                    continue
                if not all(t.is_uptodate() for t in future.result().templates):
                    del self._futures[key]
                    removed.append(key)
        for name, flags in removed:
            logger.info(
                f"Dropped stale variant '{name}' [{'+'.join(sorted(flags))}] from cache"
            )
        return removed
