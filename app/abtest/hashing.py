"""用户分桶用的确定性字符串哈希。

不能用内置 hash()：PYTHONHASHSEED 每个进程都不同，同一用户会在重启后翻桶。
"""

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def java_string_hash(s: str) -> int:
    """与 Java String.hashCode 一致（按 UTF-16 code unit，32 位有符号溢出）。"""
    h = 0
    data = s.encode("utf-16-be")
    for i in range(0, len(data), 2):
        unit = (data[i] << 8) | data[i + 1]
        h = (h * 31 + unit) & _INT32_MASK
    if h & _INT32_SIGN:
        h -= 1 << 32
    return h


def hash_string(s: str) -> int:
    """非负哈希：abs(java_string_hash)。注意 -2^31 取绝对值后是 2^31。"""
    return abs(java_string_hash(s))
