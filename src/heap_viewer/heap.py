"""Decode live CPython objects into snapshot entries."""

from __future__ import annotations

import collections.abc as cabc
import dis
import gc
import logging
import reprlib
import types
from collections import deque

from .model import Box, Entry, TrackedObject

logger = logging.getLogger(__name__)

DEFAULT_BOUND = 100
BYTECODE_FIELD = "BCO"

_short = reprlib.Repr()
_short.maxstring = 24
_short.maxother = 24
_short.maxlong = 24

_SCALARS = (type(None), bool, int, float, complex, str, bytes, bytearray)
_LEAVES = (
    types.ModuleType,
    type,
    types.BuiltinFunctionType,
    types.MethodWrapperType,
    types.WrapperDescriptorType,
    types.FrameType,
)


def shorten(obj: object) -> str:
    """Return a bounded ``repr`` suitable for a record field."""
    try:
        return _short.repr(obj)
    except Exception:  # pragma: no cover - hostile __repr__
        return f"<{type(obj).__name__}>"


def disassemble(code: types.CodeType) -> list[list[object]]:
    """Return one group of referenced constants per constant-loading instruction."""
    groups: list[list[object]] = []
    for ins in dis.get_instructions(code):
        if ins.opcode in dis.hasconst:
            groups.append([ins.argval])
    return groups


def _slot_names(cls: type) -> list[str]:
    slots = cls.__dict__.get("__slots__", ())
    if isinstance(slots, str):
        slots = (slots,)
    return [name for name in slots if name not in ("__dict__", "__weakref__")]


def _mangle(cls: type, name: str) -> str:
    """Return the attribute name Python stores a private slot under."""
    owner = cls.__name__.lstrip("_")
    if not name.startswith("__") or name.endswith("__") or not owner:
        return name
    return f"_{owner}{name}"


def _instance_attributes(obj: object) -> list[tuple[str, object]]:
    attrs: list[tuple[str, object]] = []
    for cls in type(obj).__mro__:
        for name in _slot_names(cls):
            try:
                attrs.append((name, getattr(obj, _mangle(cls, name))))
            except AttributeError:
                continue
    namespace = getattr(obj, "__dict__", None)
    if isinstance(namespace, dict):
        attrs.extend(namespace.items())
    return attrs


def decode(
    obj: object,
) -> tuple[list[str], list[object], list[list[object]] | None]:
    """Split ``obj`` into record fields, child objects and byte-code groups.

    Byte-code objects (``types.CodeType``) return no direct children; their
    pointers come from the disassembled instruction groups instead. Every
    other object returns ``None`` for the groups.
    """
    if isinstance(obj, types.CodeType):
        return [BYTECODE_FIELD], [], disassemble(obj)
    if isinstance(obj, _SCALARS):
        return [shorten(obj)], [], None
    if isinstance(obj, _LEAVES):
        return [shorten(obj)], [], None
    name = type(obj).__name__
    if isinstance(obj, (list, tuple)):
        return [name], list(obj), None
    if isinstance(obj, (set, frozenset)):
        return [name], list(obj), None
    if isinstance(obj, dict):
        keys = list(obj)
        return [name, *(shorten(k) for k in keys)], [obj[k] for k in keys], None
    if isinstance(obj, types.FunctionType):
        children: list[object] = [obj.__code__]
        children.extend(obj.__defaults__ or ())
        for cell in obj.__closure__ or ():
            try:
                children.append(cell.cell_contents)
            except ValueError:
                continue
        return [f"function {obj.__qualname__}"], children, None
    if isinstance(obj, types.MethodType):
        return [f"method {obj.__func__.__qualname__}"], [obj.__self__, obj.__func__], None
    if isinstance(obj, types.CellType):
        try:
            return ["cell"], [obj.cell_contents], None
        except ValueError:
            return ["cell", "<empty>"], [], None
    attrs = _instance_attributes(obj)
    if attrs:
        return [name, *(key for key, _ in attrs)], [value for _, value in attrs], None
    if isinstance(obj, cabc.Iterator):
        # Iterating would consume it.
        return [name], [], None
    return [name, shorten(obj)], [], None


def build_heap_snapshot(
    tracked: cabc.Sequence[TrackedObject], bound: int = DEFAULT_BOUND,
) -> dict[int, Entry]:
    """Walk the objects reachable from ``tracked`` up to ``bound`` levels deep.

    Parameters
    ----------
    tracked:
        Registry contents; each live box is a traversal root.
    bound:
        Maximum depth to expand. Slots that point past the bound are left
        empty (``None``) in the parent entry.

    Entry ids are assigned in breadth-first discovery order so that two
    snapshots of an unchanged structure get identical ids.
    """
    ids: dict[int, int] = {}
    objects: list[object] = []
    depths: list[int] = []
    names: dict[int, list[str]] = {}

    def visit(obj: object, depth: int) -> int | None:
        key = id(obj)
        if key in ids:
            return ids[key]
        if depth > bound:
            return None
        ids[key] = len(objects)
        objects.append(obj)
        depths.append(depth)
        return ids[key]

    for item in tracked:
        obj = item.box.get()
        if obj is None and item.box.is_weak:
            logger.debug("Tracked object %r has been collected", item.label)
            continue
        ident = visit(obj, 0)
        if ident is not None:
            names.setdefault(ident, []).append(item.label)

    entries: dict[int, Entry] = {}
    queue = deque(range(len(objects)))
    while queue:
        ident = queue.popleft()
        obj = objects[ident]
        depth = depths[ident]
        fields, children, groups = decode(obj)

        before = len(objects)
        if groups is not None:
            group_ids = tuple(
                tuple(visit(child, depth + 1) for child in group) for group in groups
            )
            pointers = tuple(p for group in group_ids for p in group)
        else:
            group_ids = None
            pointers = tuple(visit(child, depth + 1) for child in children)
        queue.extend(range(before, len(objects)))

        entries[ident] = Entry(
            ident=ident,
            box=Box(obj),
            fields=tuple(fields),
            pointers=pointers,
            names=tuple(names.get(ident, ())),
            bytecode=group_ids,
        )
    return entries


def collect_garbage() -> None:
    """Ask the runtime to reclaim unreachable cycles before a snapshot."""
    collected = gc.collect()
    logger.debug("Garbage collector reclaimed %d objects", collected)
