"""
Template registry with a flat, shared namespace.

Every fragment compiled into a registry is registered under its own name, and
every block it declares is registered under the block's name. All entries are
peers: any template in the registry can invoke any other one by name with the
``template`` function, e.g. ``{{ template("content") }}``. There are no private
sub-templates, and a name can only be defined once per registry.

The function table is fixed before compilation. Calling ``register`` after
the first ``compile`` raises ``FunctionsAfterCompile``, and fragments calling
a function that is not registered fail to compile.
"""
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from jinja2 import Environment, StrictUndefined, nodes, meta, pass_context
from jinja2 import TemplateError as JinjaTemplateError
from jinja2 import TemplateSyntaxError
from markupsafe import Markup

from ..error.exceptions import (
    GuestbookError,
    DuplicateTemplateName,
    FunctionsAfterCompile,
    RenderError,
    TemplateCompileError,
    TemplateError,
    TemplateNotFound,
    UndefinedFunction,
)
from .fragments import SourceFragment

logger = logging.getLogger(__name__)

# Name of the cross-template invocation function available in every registry
INVOKE_FUNCTION = "template"

_missing = object()


class _Entry:
    """A registered name: a whole fragment, or one block inside it."""

    __slots__ = ("name", "fragment", "template", "block")

    def __init__(self, name: str, fragment: str, template, block: Optional[str] = None):
        self.name = name
        self.fragment = fragment
        self.template = template
        self.block = block

    def render(self, data: Mapping[str, Any]) -> str:
        if self.block is None:
            return self.template.render(data)
        context = self.template.new_context(dict(data))
        return "".join(self.template.blocks[self.block](context))


class CompiledTemplate:
    """
    Handle on a registry with a default entry name.

    Handles are cheap views: they hold no markup of their own and always
    resolve names through the registry they came from.
    """

    def __init__(self, registry: "TemplateRegistry", name: str):
        self._registry = registry
        self._name = name

    @property
    def name(self) -> str:
        """Default entry executed by this handle."""
        return self._name

    @property
    def registry(self) -> "TemplateRegistry":
        return self._registry

    def lookup(self, name: str) -> "CompiledTemplate":
        """Look up ``name`` in the shared namespace of this template's registry."""
        return self._registry.lookup(name)

    def execute(self, writer: Any, data: Optional[Mapping[str, Any]] = None) -> None:
        """Render the default entry into ``writer``."""
        self._registry.execute(self, writer, data)

    def render(self, data: Optional[Mapping[str, Any]] = None) -> str:
        """Render the default entry and return it as a string."""
        return self._registry.render(self._name, data)

    def defined_templates(self) -> List[str]:
        """Names visible from this template."""
        return self._registry.names()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CompiledTemplate):
            return NotImplemented
        return self._registry is other._registry and self._name == other._name

    def __hash__(self) -> int:
        return hash((id(self._registry), self._name))

    def __repr__(self) -> str:
        return f"<CompiledTemplate {self._name!r} of {len(self._registry)} templates>"


class TemplateRegistry:
    """Owns a flat name -> template map and the shared function table."""

    def __init__(self, functions: Optional[Mapping[str, Callable]] = None):
        """
        Initialize the registry.

        Args:
            functions: Function table made available to every template
        """
        self._lock = threading.RLock()
        self._entries: Dict[str, _Entry] = {}
        self._functions: Dict[str, Callable] = {}
        self._compiled = False
        self._env = self._create_environment()
        if functions:
            self.register(functions)

    def _create_environment(self) -> Environment:
        """
        Create the Jinja2 environment backing this registry.

        Returns:
            Configured Jinja2 environment
        """
        env = Environment(
            extensions=['jinja2.ext.do', 'jinja2.ext.loopcontrols'],
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=True,
            undefined=StrictUndefined,
        )
        env.globals[INVOKE_FUNCTION] = self._make_invoker()
        return env

    def _make_invoker(self) -> Callable:
        registry = self

        @pass_context
        def invoke(context, name: str, data: Any = _missing) -> Markup:
            if data is _missing:
                data = context.get_all()
            return Markup(registry._render_entry(name, data))

        return invoke

    @property
    def functions(self) -> Dict[str, Callable]:
        """Copy of the function table."""
        return dict(self._functions)

    def register(self, functions: Mapping[str, Callable]) -> "TemplateRegistry":
        """
        Add functions to the shared function table.

        Args:
            functions: Mapping of function name to callable

        Returns:
            The registry, for chaining into ``compile``

        Raises:
            FunctionsAfterCompile: If any fragment was already compiled
            TemplateError: If a function is not callable or uses a reserved name
        """
        with self._lock:
            if self._compiled:
                raise FunctionsAfterCompile(functions.keys())
            for name, function in functions.items():
                if name == INVOKE_FUNCTION:
                    raise TemplateError(f"Template function name '{name}' is reserved")
                if not callable(function):
                    raise TemplateError(f"Template function '{name}' is not callable")
            self._functions.update(functions)
            self._env.globals.update(functions)
        return self

    def compile(self, entry_name: str, sources: Iterable[SourceFragment]) -> CompiledTemplate:
        """
        Parse fragments into the shared namespace.

        Fragments are parsed in order. A batch is registered all or nothing:
        when any fragment fails, no name from the batch is added.

        Args:
            entry_name: Default entry of the returned template
            sources: Fragments to parse

        Returns:
            Template whose default entry is ``entry_name``. If no fragment
            defines that name, executing it renders nothing.

        Raises:
            DuplicateTemplateName: If a name is already defined
            TemplateCompileError: If a fragment cannot be parsed
            UndefinedFunction: If a fragment calls an unregistered function
        """
        with self._lock:
            # The function table is frozen from the first compile attempt on
            self._compiled = True

            staged: Dict[str, _Entry] = {}
            for fragment in sources:
                for entry in self._compile_fragment(fragment):
                    if entry.name in self._entries or entry.name in staged:
                        raise DuplicateTemplateName(entry.name)
                    staged[entry.name] = entry

            self._entries.update(staged)
            logger.debug(f"Compiled {len(staged)} templates for entry '{entry_name}': {sorted(staged)}")

        if entry_name not in self._entries:
            logger.debug(f"Entry '{entry_name}' is not defined; executing it renders nothing")
        return CompiledTemplate(self, entry_name)

    def _compile_fragment(self, fragment: SourceFragment) -> List[_Entry]:
        try:
            ast = self._env.parse(fragment.source, name=fragment.name)
        except TemplateSyntaxError as e:
            raise TemplateCompileError(fragment.name, str(e)) from e

        self._check_functions(fragment.name, ast)

        try:
            template = self._env.from_string(fragment.source)
        except TemplateSyntaxError as e:
            raise TemplateCompileError(fragment.name, str(e)) from e

        entries = [_Entry(fragment.name, fragment.name, template)]
        for block in ast.find_all(nodes.Block):
            entries.append(_Entry(block.name, fragment.name, template, block=block.name))
        return entries

    def _check_functions(self, fragment_name: str, ast: nodes.Template) -> None:
        """Reject calls to names that are neither functions nor local macros."""
        undeclared = meta.find_undeclared_variables(ast)
        for call in ast.find_all(nodes.Call):
            if not isinstance(call.node, nodes.Name):
                continue
            name = call.node.name
            if name in undeclared and name not in self._env.globals:
                raise UndefinedFunction(fragment_name, name)

    def lookup(self, name: str) -> CompiledTemplate:
        """
        Return the template registered under ``name``.

        Raises:
            TemplateNotFound: If nothing is registered under ``name``
        """
        if name not in self._entries:
            raise TemplateNotFound(name)
        return CompiledTemplate(self, name)

    def execute(
        self,
        template: CompiledTemplate,
        writer: Any,
        data: Optional[Mapping[str, Any]] = None
    ) -> None:
        """
        Render ``template``'s default entry into ``writer``.

        Output is produced in full before anything is written, so a failing
        render leaves ``writer`` untouched.

        Args:
            template: Template handle from this registry
            writer: Object with a ``write(str)`` method
            data: Template variables

        Raises:
            RenderError: If rendering fails
        """
        if template.registry is not self:
            raise TemplateError(f"Template '{template.name}' belongs to another registry")
        output = self.render(template.name, data)
        if output:
            writer.write(output)

    def render(self, name: str, data: Optional[Mapping[str, Any]] = None) -> str:
        """Render the entry ``name``; undefined entries render as an empty string."""
        if name not in self._entries:
            return ""
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise RenderError(name, f"template data must be a mapping, got {type(data).__name__}")

        try:
            return self._render_entry(name, data)
        except RenderError:
            raise
        except (JinjaTemplateError, TemplateNotFound) as e:
            raise RenderError(name, str(e)) from e
        except GuestbookError:
            raise
        except Exception as e:
            raise RenderError(name, f"{e.__class__.__name__}: {e}") from e

    def _render_entry(self, name: str, data: Mapping[str, Any]) -> str:
        entry = self._entries.get(name)
        if entry is None:
            raise TemplateNotFound(name)
        return entry.render(data)

    def names(self) -> List[str]:
        """Registered names, sorted."""
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
