"""Global configuration for pytest"""

import pytest

from shadervariant.compiler import loading


@pytest.fixture(autouse=True)
def clean_loader_registry():
    """
    Called at start of each test, guarantees that loaders registered by one test
    do not leak into the next.
    """
    contexts = set(loading.root_loader.mapping)
    yield
    for context in list(loading.root_loader.mapping):
        if context not in contexts:
            loading.unregister_shader_loader(context)
