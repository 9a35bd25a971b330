"""Named constants — eliminates magic strings across the codebase."""

from __future__ import annotations

LANGUAGE = "javascript"

# ── Intrinsics ───────────────────────────────────────────────────

VIEW_FUNCTION = "view"
STEP_FUNCTION = "step"
VALUES_JSON_FUNCTION = "getVariablesJSON"
NOOP_INTRINSICS: tuple[str, ...] = ("data2d", "data3d")
BREAKPOINT_FUNCTIONS: tuple[str, ...] = (VIEW_FUNCTION, STEP_FUNCTION)

# ── Harness ──────────────────────────────────────────────────────

WRAPPER_FUNCTION_NAME = "executeManualFunction"
DEFAULT_VALUES_OBJECT = "variables"
RESULT_BINDING = "result"
VALUES_COMMENT = "// Parse Formulize variables"

VIEW_ANNOTATION_PATTERN = r"^([ \t]*)//[ \t]*@view(.*)$"

BEAUTIFY_INDENT_SIZE = 2
BEAUTIFY_MAX_PRESERVE_NEWLINES = 2
BEAUTIFY_BRACE_STYLE = "collapse"

# ── AST node type names used by history inspection ──────────────

BLOCK_STATEMENT = "BlockStatement"
PROGRAM = "Program"

# ── Error messages ───────────────────────────────────────────────

NO_CODE = "No code to debug"
NO_CODE_AVAILABLE = "No code available to execute"
CODE_ERROR = "Code error"
EXECUTION_ERROR = "Execution error"
NO_MANUAL_FUNCTION = "No manual formula found in environment"
BODY_EXTRACTION_ERROR = "Failed to extract function body"
VARIABLE_EXTRACTION_ERROR = "Could not extract variables"
VIEW_EXTRACTION_ERROR = "Could not extract view variables"

# ── Debug variable names ─────────────────────────────────────────

DEBUG_INTERPRETER_VALUE = "Interpreter Value"
DEBUG_CURRENT_NODE_TYPE = "Current Node Type"
DEBUG_STACK_DEPTH = "Stack Depth"
DEBUG_DECLARED_VARIABLES = "Declared Variables"
DEBUG_NODE_INFO = "Node Info"
DEBUG_CURRENT_FUNCTION = "Current Function"
DEBUG_ERROR = "[Error]"
DEBUG_VIEW_ERROR = "[View Error]"

# ── Session defaults ─────────────────────────────────────────────

DEFAULT_AUTO_PLAY_INTERVAL = 0.5

# ── LLM backends ─────────────────────────────────────────────────

CLAUDE_DEFAULT_MODEL = "claude-sonnet-4-20250514"
OPENAI_DEFAULT_MODEL = "gpt-4o"
LLM_MAX_TOKENS = 2048
LLM_TEMPERATURE = 0.1
