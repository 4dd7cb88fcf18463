from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any

import numpy as np


def to_plain(data: Any) -> Any:
    """
    Recursively convert values into YAML-safe native Python types.
    - dataclass -> dict
    - Enum -> its value
    - np.generic -> int or float
    - np.ndarray, tuple, set -> list
    """
    if is_dataclass(data) and not isinstance(data, type):
        return to_plain(asdict(data))
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, np.generic):
        return data.item()
    if isinstance(data, np.ndarray):
        return data.tolist()
    if isinstance(data, dict):
        return {k: to_plain(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [to_plain(x) for x in data]
    if isinstance(data, (set, frozenset)):
        return [to_plain(x) for x in sorted(data)]
    return data
