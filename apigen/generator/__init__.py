"""apigen schema compiler and code generators."""

from .compiler import CompiledApi as CompiledApi
from .compiler import compile_schema as compile_schema
from .errors import *
from .layout import LayoutPlanner as LayoutPlanner
from .layout import RecordLayout as RecordLayout
from .layout import embedding_order as embedding_order
from .layout import plan_layouts as plan_layouts
from .opcodes import DispatchTable as DispatchTable
from .opcodes import resolve_opcodes as resolve_opcodes
from .opcodes import resolve_protocols as resolve_protocols
from .parser import parse as parse
from .types import *
