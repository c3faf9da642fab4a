import decimal
import json
from datetime import date, datetime
from typing import Any


class CustomEncoder(json.JSONEncoder):
    """Helper class to convert JSON documents with datetime, decimals, or bytes."""

    def default(self, o):
        if isinstance(o, decimal.Decimal):
            if not o.is_finite():
                raise ValueError(f"Out of range decimal value is not JSON compliant: {o}")
            if o % 1 > 0:
                return float(o)
            else:
                return int(o)
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, bytes):
            return o.decode("utf-8")
        # raises a TypeError for anything else
        return super(CustomEncoder, self).default(o)


def dumps(obj: Any) -> str:
    """Serializes the given handler result, raising TypeError/ValueError if it is not representable as JSON."""
    return json.dumps(obj, cls=CustomEncoder, allow_nan=False)
