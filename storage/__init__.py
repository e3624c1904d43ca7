from .base import CodeStore
from .memory import MemoryCodeStore
from .sql import SqlCodeStore
