"""LayerZero classlib cells for TON DVN storage and admin messages.

A class cell starts with an 80-bit header name (ASCII, right-aligned)
followed by one 18-bit field descriptor per field:

    type        4 bits   log2 of the bit width for integers, 9 for a cell ref
    cell index  2 bits   0 for the root cell, 1..2 for overflow data cells
    data offset 10 bits  bit offset of the value inside its cell (1023 for refs)
    ref offset  2 bits   ref slot of the value inside its cell (3 for integers)

Field data follows the descriptors in the root cell. The root keeps two
ref slots for field refs; overflow data cells hang off root refs 2 and 3
and may use all 1023 bits and 4 refs.

Addresses are stored as uint256 (basechain account id). Dictionaries are
refs to a HashmapE root keyed by uint256, an empty cell when empty.
Address lists are refs to a chain of cells holding up to three uint256
addresses each, with the next cell in ref 0.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from pytoniq_core import Address, Builder, Cell, HashMap, begin_cell

NAME_BITS = 80
FIELD_TYPE_BITS = 4
CELL_INDEX_BITS = 2
DATA_OFFSET_BITS = 10
REF_OFFSET_BITS = 2
FIELD_INFO_BITS = FIELD_TYPE_BITS + CELL_INDEX_BITS + DATA_OFFSET_BITS + REF_OFFSET_BITS

MAX_CELL_BITS = 1023
MAX_CELL_REFS = 4
ROOT_FIELD_REFS = 2
MAX_CLASS_FIELDS = 15
MAX_DATA_CELLS = 2
NO_DATA_OFFSET = (1 << DATA_OFFSET_BITS) - 1
NO_REF_OFFSET = (1 << REF_OFFSET_BITS) - 1
ADDRESS_BITS = 256

# field type codes
T_BOOL = 0
T_UINT8 = 3
T_UINT16 = 4
T_UINT32 = 5
T_UINT64 = 6
T_COINS = 7
T_UINT256 = 8
T_CELL_REF = 9

FIELD_KINDS: Dict[str, int] = {
    "bool": T_BOOL,
    "uint8": T_UINT8,
    "uint16": T_UINT16,
    "uint32": T_UINT32,
    "uint64": T_UINT64,
    "coins": T_COINS,
    "uint256": T_UINT256,
    "address": T_UINT256,
    "cellRef": T_CELL_REF,
    "obj": T_CELL_REF,
    "dict256": T_CELL_REF,
    "addressList": T_CELL_REF,
}


class ClassSchema(NamedTuple):
    header: str
    fields: Tuple[Tuple[str, str], ...]


CLASS_SCHEMAS: Dict[str, ClassSchema] = {
    "Proxy": ClassSchema("proxy", (
        ("workerCoreStorage", "obj"),
    )),
    "WorkerCoreStorage": ClassSchema("wrkCorStor", (
        ("admins", "addressList"),
    )),
    "Dvn": ClassSchema("dvn", (
        ("workerCoreStorage", "obj"),
        ("quorum", "uint64"),
        ("verifiers", "dict256"),
        ("setQuorumNonce", "uint64"),
        ("setVerifiersNonce", "uint64"),
    )),
    "md::SetDict": ClassSchema("SetDict", (
        ("nonce", "uint64"),
        ("opcode", "uint32"),
        ("dict", "dict256"),
        ("target", "address"),
    )),
    "md::SetQuorum": ClassSchema("SetQuorum", (
        ("nonce", "uint64"),
        ("opcode", "uint32"),
        ("quorum", "uint64"),
        ("target", "address"),
    )),
}


class ClassLibError(ValueError):
    """Cell does not match the expected class layout."""


class FieldInfo(NamedTuple):
    type_code: int
    cell_index: int
    data_offset: int
    ref_offset: int


def type_width(type_code: int) -> int:
    if type_code == T_CELL_REF:
        return 0
    if T_BOOL <= type_code <= T_UINT256:
        return 1 << type_code
    raise ClassLibError(f"unsupported field type {type_code}")


def schema_for(name: str) -> ClassSchema:
    schema = CLASS_SCHEMAS.get(name)
    if schema is None:
        raise ClassLibError(f"unknown class {name!r}")
    return schema


def encode_name(header: str) -> int:
    raw = header.encode("ascii")
    if len(raw) > NAME_BITS // 8:
        raise ClassLibError(f"class name {header!r} longer than {NAME_BITS // 8} bytes")
    return int.from_bytes(raw, "big")


def decode_name(value: int) -> str:
    raw = value.to_bytes(NAME_BITS // 8, "big").lstrip(b"\x00")
    return raw.decode("ascii", errors="replace")


def _read_uint(cell: Cell, offset: int, width: int) -> int:
    if offset + width > len(cell.bits):
        raise ClassLibError(f"read of {width} bits at {offset} past end of {len(cell.bits)}-bit cell")
    slice_ = cell.begin_parse()
    if offset:
        slice_.skip_bits(offset)
    return slice_.load_uint(width)


def _ref(cell: Cell, index: int) -> Cell:
    if index >= len(cell.refs):
        raise ClassLibError(f"ref {index} missing from cell with {len(cell.refs)} refs")
    return cell.refs[index]


def class_name(cell: Cell) -> str:
    """Name stored in the header of a class cell."""
    return decode_name(_read_uint(cell, 0, NAME_BITS))


# ============ Layout ============

def layout(type_codes: List[int]) -> List[FieldInfo]:
    """Place fields into the root cell and overflow data cells."""
    if len(type_codes) > MAX_CLASS_FIELDS:
        raise ClassLibError(f"{len(type_codes)} fields exceed the {MAX_CLASS_FIELDS} field limit")

    placements: List[FieldInfo] = []
    cell_index = 0
    max_refs = ROOT_FIELD_REFS
    data_offset = NAME_BITS + len(type_codes) * FIELD_INFO_BITS
    ref_offset = 0
    for type_code in type_codes:
        bits = type_width(type_code)
        refs = 1 if type_code == T_CELL_REF else 0
        if data_offset + bits > MAX_CELL_BITS or ref_offset + refs > max_refs:
            cell_index += 1
            if cell_index > MAX_DATA_CELLS:
                raise ClassLibError("class data does not fit in three cells")
            max_refs = MAX_CELL_REFS
            data_offset = 0
            ref_offset = 0
        if refs:
            placements.append(FieldInfo(type_code, cell_index, NO_DATA_OFFSET, ref_offset))
        else:
            placements.append(FieldInfo(type_code, cell_index, data_offset, NO_REF_OFFSET))
        data_offset += bits
        ref_offset += refs
    return placements


def read_field_info(cell: Cell, index: int) -> FieldInfo:
    offset = NAME_BITS + index * FIELD_INFO_BITS
    return FieldInfo(
        _read_uint(cell, offset, FIELD_TYPE_BITS),
        _read_uint(cell, offset + FIELD_TYPE_BITS, CELL_INDEX_BITS),
        _read_uint(cell, offset + FIELD_TYPE_BITS + CELL_INDEX_BITS, DATA_OFFSET_BITS),
        _read_uint(cell, offset + FIELD_TYPE_BITS + CELL_INDEX_BITS + DATA_OFFSET_BITS, REF_OFFSET_BITS),
    )


def _data_cell(root: Cell, cell_index: int) -> Cell:
    if cell_index == 0:
        return root
    return _ref(root, ROOT_FIELD_REFS + cell_index - 1)


def get_uint(cell: Cell, index: int) -> int:
    info = read_field_info(cell, index)
    if info.type_code == T_CELL_REF:
        raise ClassLibError(f"field {index} is a cell ref")
    return _read_uint(_data_cell(cell, info.cell_index), info.data_offset, type_width(info.type_code))


def get_ref(cell: Cell, index: int) -> Cell:
    info = read_field_info(cell, index)
    if info.type_code != T_CELL_REF:
        raise ClassLibError(f"field {index} is not a cell ref")
    return _ref(_data_cell(cell, info.cell_index), info.ref_offset)


# ============ Field values ============

def address_to_int(address: Any) -> int:
    if isinstance(address, Address):
        return int.from_bytes(address.hash_part, "big")
    return int(address)


def int_to_address(value: int) -> Address:
    return Address(f"0:{value:064x}")


def _key_to_int(key: Any) -> int:
    if isinstance(key, int):
        return key
    if isinstance(key, str):
        return int(key, 2)
    return int(key.to01(), 2)


def _is_empty(cell: Cell) -> bool:
    return len(cell.bits) == 0 and not cell.refs


def serialize_uint256_dict(keys: Iterable[int]) -> Cell:
    """Dictionary with uint256 keys and empty-cell values; an empty cell when there are no keys."""
    keys = list(keys)
    if not keys:
        return begin_cell().end_cell()
    hashmap = HashMap(256, value_serializer=lambda src, dest: dest.store_ref(src))
    for key in keys:
        hashmap.set_int_key(key, begin_cell().end_cell())
    return hashmap.serialize()


def parse_uint256_dict(cell: Optional[Cell]) -> List[int]:
    if cell is None or _is_empty(cell):
        return []
    parsed = HashMap.parse(
        cell.begin_parse(),
        256,
        key_deserializer=_key_to_int,
        value_deserializer=lambda src: None,
    )
    return sorted(parsed.keys())


def parse_address_list(cell: Cell) -> List[Address]:
    addresses: List[Address] = []
    current: Optional[Cell] = cell
    while current is not None:
        count = len(current.bits) // ADDRESS_BITS
        for i in range(count):
            addresses.append(int_to_address(_read_uint(current, i * ADDRESS_BITS, ADDRESS_BITS)))
        current = current.refs[0] if current.refs else None
    return addresses


# ============ Classes ============

def build_class(name: str, values: Dict[str, Any]) -> Cell:
    """Serialize ``values`` as a class cell.

    Ref fields (``obj``, ``dict256``, ``addressList``) take an already
    built cell. ``address`` fields take an Address or its uint256 form.
    """
    schema = schema_for(name)
    type_codes = [FIELD_KINDS[kind] for _, kind in schema.fields]
    placements = layout(type_codes)

    header: Builder = begin_cell().store_uint(encode_name(schema.header), NAME_BITS)
    for info in placements:
        header.store_uint(info.type_code, FIELD_TYPE_BITS)
        header.store_uint(info.cell_index, CELL_INDEX_BITS)
        header.store_uint(info.data_offset, DATA_OFFSET_BITS)
        header.store_uint(info.ref_offset, REF_OFFSET_BITS)

    data_cells: List[Builder] = [begin_cell() for _ in range(MAX_DATA_CELLS)]
    for (field_name, kind), info in zip(schema.fields, placements):
        if field_name not in values:
            raise ClassLibError(f"{name}.{field_name} is required")
        value = values[field_name]
        builder = header if info.cell_index == 0 else data_cells[info.cell_index - 1]
        if info.type_code == T_CELL_REF:
            if not isinstance(value, Cell):
                raise ClassLibError(f"{name}.{field_name} must be a cell")
            builder.store_ref(value)
        elif kind == "address":
            builder.store_uint(address_to_int(value), ADDRESS_BITS)
        else:
            builder.store_uint(int(value), type_width(info.type_code))

    used_cells = max(info.cell_index for info in placements) if placements else 0
    if used_cells:
        root_refs = sum(1 for info in placements if info.cell_index == 0 and info.type_code == T_CELL_REF)
        for _ in range(ROOT_FIELD_REFS - root_refs):
            header.store_ref(begin_cell().end_cell())
        for builder in data_cells[:used_cells]:
            header.store_ref(builder.end_cell())
    return header.end_cell()


def decode_class(name: str, cell: Cell) -> Dict[str, Any]:
    """Read the fields of ``name`` from a class cell through its field descriptors.

    ``obj`` fields come back as cells; dictionaries and address lists are parsed.
    """
    schema = schema_for(name)
    found = class_name(cell)
    if found != schema.header:
        raise ClassLibError(f"expected class {name!r}, found {found!r}")

    out: Dict[str, Any] = {}
    try:
        for index, (field_name, kind) in enumerate(schema.fields):
            expected = FIELD_KINDS[kind]
            info = read_field_info(cell, index)
            if info.type_code != expected:
                raise ClassLibError(
                    f"{name}.{field_name} has type {info.type_code}, expected {expected}"
                )
            if expected != T_CELL_REF:
                value = get_uint(cell, index)
                out[field_name] = int_to_address(value) if kind == "address" else value
            elif kind == "dict256":
                out[field_name] = parse_uint256_dict(get_ref(cell, index))
            elif kind == "addressList":
                out[field_name] = parse_address_list(get_ref(cell, index))
            else:
                out[field_name] = get_ref(cell, index)
    except ClassLibError:
        raise
    except Exception as e:
        raise ClassLibError(f"malformed {name} cell: {e}") from e
    return out
