from __future__ import annotations

WASM_MAGIC = b'\x00asm'
EXPORT_SECTION = 7
FUNCTION_EXPORT = 0


def _read_uleb128(data: bytes, offset: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise ValueError('truncated leb128 value')
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, offset
        shift += 7


def exported_functions(code: bytes) -> list[str]:
    """Names of the functions a wasm module exports, in declaration order."""
    if code[:4] != WASM_MAGIC:
        raise ValueError('not a wasm module')
    offset = 8
    names: list[str] = []
    while offset < len(code):
        section_id = code[offset]
        size, offset = _read_uleb128(code, offset + 1)
        end = offset + size
        if end > len(code):
            raise ValueError('truncated wasm section')
        if section_id == EXPORT_SECTION:
            count, cursor = _read_uleb128(code, offset)
            for _ in range(count):
                name_len, cursor = _read_uleb128(code, cursor)
                name = code[cursor:cursor + name_len].decode('utf-8')
                cursor += name_len
                kind = code[cursor]
                _, cursor = _read_uleb128(code, cursor + 1)
                if kind == FUNCTION_EXPORT:
                    names.append(name)
        offset = end
    return names
