"""Symbol extraction: tree-sitter for TypeScript/JavaScript, ast for Python."""

from __future__ import annotations

import ast
import logging
import os
import re

import tree_sitter_typescript as ts_typescript
from tree_sitter import Language, Node, Parser, Query, QueryCursor

from repodocs.models import FileFacts, Symbol

logger = logging.getLogger(__name__)

TS_LANGUAGE = Language(ts_typescript.language_typescript())
TSX_LANGUAGE = Language(ts_typescript.language_tsx())

# ── Tree-sitter queries for symbol extraction ──
# Function, class, method, interface, type alias and enum declarations, plus
# const/let/var declarators (filtered to module scope after matching).

_SYMBOL_QUERY_SRC = """
(function_declaration
  name: (identifier) @name) @definition

(generator_function_declaration
  name: (identifier) @name) @definition

(class_declaration
  name: (type_identifier) @name) @definition

(abstract_class_declaration
  name: (type_identifier) @name) @definition

(method_definition
  name: (property_identifier) @name) @definition

(interface_declaration
  name: (type_identifier) @name) @definition

(type_alias_declaration
  name: (type_identifier) @name) @definition

(enum_declaration
  name: (identifier) @name) @definition

(lexical_declaration
  (variable_declarator
    name: (identifier) @name)) @definition

(variable_declaration
  (variable_declarator
    name: (identifier) @name)) @definition
"""

_NODE_KIND_MAP = {
    "function_declaration": "function",
    "generator_function_declaration": "function",
    "class_declaration": "class",
    "abstract_class_declaration": "class",
    "method_definition": "method",
    "interface_declaration": "interface",
    "type_alias_declaration": "type",
    "enum_declaration": "enum",
    "lexical_declaration": "variable",
    "variable_declaration": "variable",
}

_FUNCTION_VALUES = {"arrow_function", "function_expression", "function", "generator_function"}
_MODULE_SCOPE = {"program", "export_statement"}

_TS_BRANCH_NODES = {
    "if_statement", "for_statement", "for_in_statement", "while_statement",
    "do_statement", "switch_case", "catch_clause", "ternary_expression",
}
_TS_BOOLEAN_OPS = {"&&", "||", "??"}

_PY_BRANCH_NODES = (
    ast.If, ast.For, ast.AsyncFor, ast.While, ast.ExceptHandler,
    ast.IfExp, ast.comprehension, ast.match_case,
)

_TSX_SUFFIXES = {".tsx", ".jsx", ".js", ".mjs", ".cjs"}
_TS_SUFFIXES = {".ts", ".mts", ".cts"}
_PY_SUFFIXES = {".py"}

SNIPPET_MAX_LINES = 12
SNIPPET_MAX_CHARS = 600


def _snippet(body: str) -> str:
    """First lines of a declaration, used as a hover preview."""
    lines = body.split("\n")[:SNIPPET_MAX_LINES]
    return "\n".join(lines)[:SNIPPET_MAX_CHARS]


def _ts_complexity(node: Node) -> int:
    score = 1
    stack = list(node.children)
    while stack:
        current = stack.pop()
        if current.type in _TS_BRANCH_NODES:
            score += 1
        elif current.type == "binary_expression":
            op = current.child_by_field_name("operator")
            if op is not None and op.type in _TS_BOOLEAN_OPS:
                score += 1
        stack.extend(current.children)
    return score


def _py_complexity(node: ast.AST) -> int:
    score = 1
    for child in ast.walk(node):
        if isinstance(child, _PY_BRANCH_NODES):
            score += 1
        elif isinstance(child, ast.BoolOp):
            score += len(child.values) - 1
    return score


class SymbolExtractor:
    """Extracts declared symbols from a single file's text.

    Never raises: a file that cannot be parsed yields an empty list.
    """

    def __init__(self) -> None:
        self._ts_parser = Parser(TS_LANGUAGE)
        self._tsx_parser = Parser(TSX_LANGUAGE)
        self._ts_query = Query(TS_LANGUAGE, _SYMBOL_QUERY_SRC)
        self._tsx_query = Query(TSX_LANGUAGE, _SYMBOL_QUERY_SRC)

    def supports(self, file_path: str) -> bool:
        suffix = os.path.splitext(file_path)[1].lower()
        return suffix in _TS_SUFFIXES | _TSX_SUFFIXES | _PY_SUFFIXES

    def extract(self, content: str, file_path: str) -> list[Symbol]:
        """Return the symbols declared in ``content``, ordered by position."""
        suffix = os.path.splitext(file_path)[1].lower()
        try:
            if suffix in _TS_SUFFIXES:
                return self._extract_ts(content, file_path, self._ts_parser, self._ts_query)
            if suffix in _TSX_SUFFIXES:
                return self._extract_ts(content, file_path, self._tsx_parser, self._tsx_query)
            if suffix in _PY_SUFFIXES:
                return self._extract_python(content, file_path)
        except Exception as e:
            logger.debug("Symbol extraction failed for %s: %s", file_path, e)
        return []

    # ── TypeScript / JavaScript ──

    def _extract_ts(
        self, content: str, file_path: str, parser: Parser, query: Query
    ) -> list[Symbol]:
        tree = parser.parse(content.encode("utf-8"))
        cursor = QueryCursor(query)
        matches = cursor.matches(tree.root_node)

        found: list[tuple[int, int, Symbol]] = []
        for _pattern_idx, captures in matches:
            def_nodes = captures.get("definition", [])
            name_nodes = captures.get("name", [])
            if not def_nodes or not name_nodes:
                continue

            def_node = def_nodes[0]
            name_node = name_nodes[0]
            kind = _NODE_KIND_MAP.get(def_node.type, "variable")
            span = def_node

            if kind == "variable":
                # Locals inside function bodies are not symbols
                if def_node.parent is None or def_node.parent.type not in _MODULE_SCOPE:
                    continue
                declarator = name_node.parent
                span = declarator
                value = declarator.child_by_field_name("value")
                if value is not None and value.type in _FUNCTION_VALUES:
                    kind = "function"

            body = span.text.decode("utf-8", errors="replace")
            found.append((
                span.start_point[0],
                span.start_point[1],
                Symbol(
                    name=name_node.text.decode("utf-8"),
                    kind=kind,
                    file_path=file_path,
                    line=span.start_point[0] + 1,  # 1-indexed
                    end_line=span.end_point[0] + 1,
                    complexity=_ts_complexity(span),
                    code_snippet=_snippet(body),
                    body=body,
                ),
            ))

        found.sort(key=lambda item: (item[0], item[1]))
        return [sym for _row, _col, sym in found]

    # ── Python ──

    def _extract_python(self, content: str, file_path: str) -> list[Symbol]:
        try:
            tree = ast.parse(content)
        except (SyntaxError, ValueError):
            return []

        symbols: list[Symbol] = []

        def add(node: ast.AST, name: str, kind: str) -> None:
            body = ast.get_source_segment(content, node) or ""
            symbols.append(Symbol(
                name=name,
                kind=kind,
                file_path=file_path,
                line=node.lineno,
                end_line=node.end_lineno or node.lineno,
                complexity=_py_complexity(node),
                code_snippet=_snippet(body),
                body=body,
            ))

        def visit(nodes: list[ast.stmt], in_class: bool) -> None:
            for node in nodes:
                if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    add(node, node.name, "method" if in_class else "function")
                elif isinstance(node, ast.ClassDef):
                    add(node, node.name, "class")
                    visit(node.body, in_class=True)
                elif not in_class and isinstance(node, (ast.Assign, ast.AnnAssign)):
                    targets = node.targets if isinstance(node, ast.Assign) else [node.target]
                    for target in targets:
                        if isinstance(target, ast.Name):
                            add(node, target.id, "variable")

        visit(tree.body, in_class=False)
        symbols.sort(key=lambda s: s.line)
        return symbols


# ── File facts ──

_JS_IMPORT = re.compile(r"import\s+.*\s+from\s+['\"]([^'\"]+)['\"]")
_PY_IMPORT = re.compile(r"^(?:from\s+([\w.]+)\s+import|import\s+([\w.]+))")
_API_CALL = re.compile(r"\.(get|post|put|delete|patch)\s*\(\s*['\"]([^'\"]+)['\"]")
_API_DECORATOR = re.compile(
    r"@(GetMapping|PostMapping|PutMapping|DeleteMapping|PatchMapping)\s*\(\s*['\"]([^'\"]+)['\"]"
)
_PY_ROUTE = re.compile(r"@\w+\.(route|get|post|put|delete|patch)\s*\(\s*['\"]([^'\"]+)['\"]")
_DB_PATTERNS = (
    re.compile(r"@Entity\("),
    re.compile(r"new\s+Schema\("),
    re.compile(r"CREATE\s+TABLE\s+\w+", re.IGNORECASE),
    re.compile(r"\(\s*(?:db\.)?Model\s*\)"),
)

_DB_EXTENSIONS = {".sql", ".prisma"}
_INFRA_FILENAMES = {
    "dockerfile", "docker-compose.yml", "docker-compose.yaml",
    "main.tf", "variables.tf", "outputs.tf",
}
_INFRA_EXTENSIONS = {".tf", ".tfvars", ".dockerfile"}
_HASH_COMMENT_EXTENSIONS = {".py", ".tf", ".yml", ".yaml", ".sh"}
_JS_EXTENSIONS = _TS_SUFFIXES | _TSX_SUFFIXES

MAX_FACTS_BYTES = 100_000


def _strip_comments(lines: list[str], extension: str) -> list[str]:
    out = []
    in_block = False
    for raw in lines:
        line = raw.strip()
        if extension in _JS_EXTENSIONS:
            if in_block:
                if "*/" not in line:
                    continue
                in_block = False
                line = line.split("*/", 1)[1].strip()
            if line.startswith("/*"):
                if "*/" in line:
                    line = re.sub(r"/\*.*?\*/", "", line).strip()
                else:
                    in_block = True
                    continue
            if "//" in line:
                line = line[: line.index("//")].strip()
        elif extension in _HASH_COMMENT_EXTENSIONS and "#" in line:
            line = line[: line.index("#")].strip()
        if line:
            out.append(line)
    return out


def extract_file_facts(content: str, file_path: str) -> FileFacts:
    """Detect imports, API endpoints, schema and infrastructure markers."""
    filename = file_path.rsplit("/", 1)[-1].lower()
    extension = os.path.splitext(filename)[1]
    language = extension.lstrip(".") or filename

    is_db_schema = extension in _DB_EXTENSIONS
    is_infra = filename in _INFRA_FILENAMES or extension in _INFRA_EXTENSIONS

    # Skip minified or very large files
    if len(content) > MAX_FACTS_BYTES:
        return FileFacts(language=language, is_db_schema=is_db_schema, is_infra=is_infra)

    imports: list[str] = []
    endpoints: list[str] = []

    for line in _strip_comments(content.split("\n"), extension):
        if not is_db_schema and any(p.search(line) for p in _DB_PATTERNS):
            is_db_schema = True

        if extension in _JS_EXTENSIONS:
            m = _JS_IMPORT.search(line)
            if m:
                imports.append(m.group(1))
            m = _API_CALL.search(line)
            if m:
                endpoints.append(f"{m.group(1).upper()} {m.group(2)}")
            m = _API_DECORATOR.search(line)
            if m:
                endpoints.append(f"{m.group(1).replace('Mapping', '').upper()} {m.group(2)}")
        elif extension in _PY_SUFFIXES:
            m = _PY_IMPORT.search(line)
            if m:
                imports.append(m.group(1) or m.group(2))
            m = _PY_ROUTE.search(line)
            if m:
                method = m.group(1).upper()
                endpoints.append(f"{'ENDPOINT' if method == 'ROUTE' else method} {m.group(2)}")

    return FileFacts(
        language=language,
        imports=tuple(imports),
        api_endpoints=tuple(endpoints),
        has_api_pattern=bool(endpoints),
        is_db_schema=is_db_schema,
        is_infra=is_infra,
    )
