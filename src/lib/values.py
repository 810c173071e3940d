"""
Value conversion between documents and scripts.

Scripts see plain Python values. Data blocks are decoded with every scalar
kept as the string the author wrote, and results are turned back into text
with value_display().
"""

from typing import Any, Dict, List

import yaml

from .errors import DataBlockError


class TextLoader(yaml.SafeLoader):
    """SafeLoader that resolves every plain scalar to a string"""


# No implicit resolvers: "2.5", "2022-10" and "true" all stay strings
TextLoader.yaml_implicit_resolvers = {}


def value_display(value: Any) -> str:
    """
    Render a script value as display text.

    Integral floats drop their fractional part so sums of decimal data read
    naturally; everything else uses str().

    Example:
        >>> value_display(1.0), value_display(9.5), value_display("2022-10")
        ('1', '9.5', '2022-10')
    """
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return str(value)


def records_decode(body: str) -> tuple[str, List[Dict[str, str]]]:
    """
    Decode a Data block body into its variable name and records.

    The body is a YAML (or JSON) mapping with a ``name`` that is a valid
    identifier and a ``data`` list of mappings.

    Args:
        body: Data block body with result comments already stripped

    Returns:
        (name, records) with every record value a string

    Raises:
        DataBlockError: If the body does not have that shape
    """
    try:
        payload = yaml.load(body, Loader=TextLoader)
    except yaml.YAMLError as e:
        raise DataBlockError(f"failed to parse block: {e}") from e

    if not isinstance(payload, dict):
        raise DataBlockError("Data block must be a mapping with 'name' and 'data'")

    name = payload.get('name')
    if not isinstance(name, str) or not name.isidentifier():
        raise DataBlockError(f"Data block 'name' must be an identifier, got {name!r}")

    data = payload.get('data', [])
    if data in ('', None):
        data = []
    if not isinstance(data, list):
        raise DataBlockError(f"Data block '{name}': 'data' must be a list of records")

    records = []
    for position, entry in enumerate(data, start=1):
        if not isinstance(entry, dict):
            raise DataBlockError(f"Data block '{name}': record {position} is not a mapping")
        records.append({str(key): record_valueCoerce(value) for key, value in entry.items()})

    return name, records


def record_valueCoerce(value: Any) -> Any:
    """Empty scalars become "", nested lists and mappings keep their string leaves"""
    if value is None:
        return ''
    if isinstance(value, list):
        return [record_valueCoerce(item) for item in value]
    if isinstance(value, dict):
        return {str(key): record_valueCoerce(item) for key, item in value.items()}
    return str(value)
