"""Named constants: limits, reserved names and message templates."""

from __future__ import annotations

MAX_ARGS = 25
MAX_COMMAND_ARGS = 12
MAX_RUN_DEPTH = 255
MAX_DBG_ALIAS = 4

INT_MIN = -(2**31)
INT_MAX = 2**31 - 1

ARG_NAME_TEMPLATE = "arg{n}"
DUMMY_IDENT_NAME = "//dummy"
NUMARGS_VAR_NAME = "numargs"
DBGALIAS_VAR_NAME = "dbgalias"

# Keyword idents: compiled specially, but still callable by name at runtime.
KEYWORD_LOCAL = "local"
KEYWORD_DO = "do"
KEYWORD_DOARGS = "doargs"
KEYWORD_IF = "if"
KEYWORD_RESULT = "result"
KEYWORD_NOT = "!"
KEYWORD_AND = "&&"
KEYWORD_OR = "||"

SIGNATURE_CHARS = "ibfFsStTeErN$DCV1234"

CONFIG_HEADER_TEMPLATE = (
    "// automatically written on exit, DO NOT MODIFY\n"
    "// delete this file to have {default_config} overwrite these settings\n"
    "// modify settings in game, or put settings in {autoexec} to override anything\n"
    "\n"
)

DEFAULT_SAVED_CONFIG = "config.cfg"
DEFAULT_AUTOEXEC = "autoexec.cfg"
DEFAULT_CONFIG = "data/defaults.cfg"

MSG_UNKNOWN_COMMAND = "unknown command: %s"
MSG_UNKNOWN_ALIAS_LOOKUP = "unknown alias lookup: %s"
MSG_READ_ONLY = "variable %s is read-only"
MSG_RECURSION_LIMIT = "exceeded recursion limit"
MSG_NOT_IDENT_NAME = "number %s is not a valid identifier name"
MSG_CANNOT_ALIAS_NUMBER = "cannot alias number %s"
MSG_CANNOT_REDEFINE = "cannot redefine builtin %s with an alias"
MSG_CANNOT_OVERRIDE = "cannot override persistent variable %s"
MSG_COULD_NOT_READ = 'could not read "%s"'
MSG_COULD_NOT_WRITE = 'could not write "%s"'
MSG_CANNOT_REDEFINE_VAR = "cannot redefine %s as a variable"
