"""
Template system with a flat shared namespace and a process-wide cache.
"""

from .fragments import SourceFragment, fragments_from_files, fragments_from_mapping
from .registry import CompiledTemplate, TemplateRegistry, INVOKE_FUNCTION
from .cache import TemplateCache, TemplateSet

__all__ = [
    'SourceFragment',
    'fragments_from_files',
    'fragments_from_mapping',
    'CompiledTemplate',
    'TemplateRegistry',
    'INVOKE_FUNCTION',
    'TemplateCache',
    'TemplateSet',
]
