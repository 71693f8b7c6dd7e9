# insight_engine/utils/values.py
import math
from datetime import date, datetime
from typing import Any, Optional

import numpy as np
import pandas as pd

BOOLEAN_TOKENS = {'true', 'false', '1', '0', 'yes', 'no'}


def is_empty(value: Any) -> bool:
    """True for None, NaN/NaT and blank strings"""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    try:
        return bool(pd.isna(value)) if np.isscalar(value) else False
    except (TypeError, ValueError):
        return False


def to_number(value: Any) -> Optional[float]:
    """Parse a cell as a finite float, or None"""
    if value is None or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text or '_' in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_date(value: Any) -> Optional[pd.Timestamp]:
    """
    Parse a cell as a UTC timestamp, or None

    Numbers are read as epoch milliseconds, strings with pandas' mixed-format
    parser. Naive values are treated as UTC.
    """
    if is_empty(value) or isinstance(value, (bool, np.bool_)):
        return None

    try:
        if isinstance(value, (int, float, np.integer, np.floating)):
            if not math.isfinite(float(value)):
                return None
            timestamp = pd.to_datetime(float(value), unit='ms', utc=True, errors='coerce')
        elif isinstance(value, (pd.Timestamp, datetime, date, np.datetime64)):
            timestamp = pd.Timestamp(value)
            timestamp = timestamp.tz_localize('UTC') if timestamp.tzinfo is None else timestamp.tz_convert('UTC')
        elif isinstance(value, str):
            timestamp = pd.to_datetime(value.strip(), utc=True, errors='coerce')
        else:
            return None
    except (ValueError, TypeError, OverflowError):
        return None

    if timestamp is None or pd.isna(timestamp):
        return None
    return timestamp


def is_boolean_token(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return True
    return str(value).strip().lower() in BOOLEAN_TOKENS
