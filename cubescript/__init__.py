"""CubeScript embeddable command language package."""

from .run import create_vm, run  # noqa: F401
from .api import compile_source, dump_bytecode, evaluate, opcode_stats  # noqa: F401
from .errors import CompileError, DuplicateIdentError, ScriptError  # noqa: F401
from .registry import IdentRegistry  # noqa: F401
from .run_types import VMConfig  # noqa: F401
from .signature import NativeCommand  # noqa: F401
from .values import Value, ValueType  # noqa: F401
from .vm import VirtualMachine  # noqa: F401
