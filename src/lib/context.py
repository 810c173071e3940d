"""
Evaluation context shared by every block of one render pass

Scripts are Python. The context owns a single namespace dictionary that
every block executes against, so bindings made by one block are visible to
all later blocks and to later inline spans, and functions defined in a
ScriptGlobals block see later bindings through their ``__globals__``.

A context is created by the render pass and discarded with it; nothing is
kept between passes.
"""

import ast
import inspect
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from .errors import NameNotFoundError, ScriptError, YamdrError
from .log import LOG
from .values import value_display

_MISSING = object()

# Top-level statements a ScriptGlobals block may contain
_DEFINITIONS = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Import, ast.ImportFrom)


class EvaluationContext:
    """
    Variable namespace plus function registry

    Attributes:
        namespace: Globals dictionary every script runs in
        functions: Functions registered by ScriptGlobals blocks or the host
        natives: Host callables always visible to scripts
    """

    def __init__(self) -> None:
        self.namespace: Dict[str, Any] = {'__name__': '__yamdr__'}
        self.functions: Dict[str, Callable[..., Any]] = {}
        self.natives: Dict[str, Callable[..., Any]] = {'debug': self.debug_record}
        self.namespace.update(self.natives)

        self._filename: Optional[str] = None
        self._outputs: Optional[List[Tuple[Optional[int], str]]] = None

    def bind(self, name: str, value: Any) -> None:
        """Bind name to value, replacing any earlier binding"""
        self.namespace[name] = value

    def lookup(self, name: str) -> Any:
        """
        Current value bound to name

        Raises:
            NameNotFoundError: If nothing has bound the name yet
        """
        try:
            return self.namespace[name]
        except KeyError:
            raise NameNotFoundError(f"name '{name}' is not defined") from None

    def function_register(self, name: str, function: Callable[..., Any]) -> None:
        """Register a callable and make it visible to scripts under name"""
        self.functions[name] = function
        self.namespace[name] = function

    def functions_define(self, source: str, filename: str = "<globals>") -> List[str]:
        """
        Run a block of function definitions and register every function

        Args:
            source: Python source holding only def and import statements
            filename: Pseudo filename used in error messages

        Returns:
            Names of the functions defined, in source order

        Raises:
            ScriptError: If the source does not parse, holds any other kind
                         of top-level statement, or fails while running
        """
        tree = self.source_parse(source, filename)
        for node in tree.body:
            if not isinstance(node, _DEFINITIONS):
                raise ScriptError(
                    f"line {node.lineno}: only function definitions and imports are "
                    f"allowed here, found {type(node).__name__}"
                )

        self.statements_run(tree.body, filename)

        names = []
        for node in tree.body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self.function_register(node.name, self.namespace[node.name])
                names.append(node.name)
        LOG(f"Registered functions: {', '.join(names) or '(none)'}", level=3)
        return names

    def eval(
        self,
        source: str,
        filename: str = "<script>",
        natives: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> Any:
        """
        Run statements against the namespace, one at a time

        Effects commit per top-level statement: those that completed before
        a failure are kept, and so is whatever the failing statement bound
        before it raised (an assignment earlier in the same loop body, say).

        Args:
            source: Python statements, optionally ending with an expression
            filename: Pseudo filename used for line tracking and messages
            natives: Callables visible only while this call runs

        Returns:
            Value of the trailing expression statement, None otherwise

        Raises:
            NameNotFoundError: If the code used an unbound name
            ScriptError: On any other parse or runtime failure
        """
        tree = self.source_parse(source, filename)
        previous, self._filename = self._filename, filename
        try:
            with self.natives_scoped(natives or {}):
                return self.statements_run(tree.body, filename)
        finally:
            self._filename = previous

    def source_parse(self, source: str, filename: str) -> ast.Module:
        try:
            return ast.parse(source, filename=filename)
        except SyntaxError as e:
            raise ScriptError(f"line {e.lineno}: {type(e).__name__}: {e.msg}") from e

    def statements_run(self, statements: List[ast.stmt], filename: str) -> Any:
        value = None
        for position, statement in enumerate(statements):
            trailing = position == len(statements) - 1 and isinstance(statement, ast.Expr)
            try:
                if trailing:
                    code = compile(ast.Expression(statement.value), filename, 'eval')
                    value = eval(code, self.namespace)
                else:
                    code = compile(ast.Module([statement], type_ignores=[]), filename, 'exec')
                    exec(code, self.namespace)
            except YamdrError:
                raise
            except NameError as e:
                raise NameNotFoundError(self.error_format(e, filename, statement.lineno)) from e
            except Exception as e:
                raise ScriptError(self.error_format(e, filename, statement.lineno)) from e
        return value

    def error_format(self, error: BaseException, filename: str, lineno: int) -> str:
        """Message of the form "line N: Type: message", N relative to the block"""
        traceback = error.__traceback__
        while traceback is not None:
            if traceback.tb_frame.f_code.co_filename == filename:
                lineno = traceback.tb_lineno
            traceback = traceback.tb_next
        return f"line {lineno}: {type(error).__name__}: {error}"

    @contextmanager
    def natives_scoped(self, natives: Mapping[str, Callable[..., Any]]) -> Iterator[None]:
        """Expose natives for the duration of the with-block, then restore prior bindings"""
        saved = {name: self.namespace.get(name, _MISSING) for name in natives}
        self.namespace.update(natives)
        try:
            yield
        finally:
            for name, value in saved.items():
                if value is _MISSING:
                    self.namespace.pop(name, None)
                else:
                    self.namespace[name] = value

    @contextmanager
    def debug_capture(self) -> Iterator[List[Tuple[Optional[int], str]]]:
        """Collect debug() output produced inside the with-block"""
        previous, self._outputs = self._outputs, []
        try:
            yield self._outputs
        finally:
            self._outputs = previous

    def debug_record(self, *values: Any) -> None:
        """The ``debug`` native: record output against the calling script line"""
        text = ' '.join(value_display(value) for value in values)
        lineno = self.script_lineno()
        LOG(f"debug (line {lineno}): {text}", level=3)
        if self._outputs is not None:
            self._outputs.append((lineno, text))

    def script_lineno(self) -> Optional[int]:
        """Line of the running block that is currently executing, if any"""
        frame = inspect.currentframe()
        try:
            while frame is not None:
                if self._filename is not None and frame.f_code.co_filename == self._filename:
                    return frame.f_lineno
                frame = frame.f_back
            return None
        finally:
            del frame
