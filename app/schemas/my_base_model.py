import logging
from typing import Any

from pydantic import BaseModel
from sqlalchemy.engine.row import Row

logger = logging.getLogger(__name__)

_SIMPLE_DEFAULTS = {int: 0, float: 0.0, str: "", bool: False, dict: None}


class CustomBaseModel(BaseModel):
    """Base model for response schemas.
    - coerce simple typed fields (int, float, str, bool, dict) before init
    - fall back to the field default when a value cannot be coerced
    - build from ORM objects, SQLAlchemy rows or dicts
    """

    def __init__(self, **data: Any) -> None:
        fields = type(self).model_fields
        for attr, value in data.items():
            field = fields.get(attr)
            if field is None or value is None:
                continue
            attr_type = field.annotation
            if attr_type not in _SIMPLE_DEFAULTS or isinstance(value, attr_type):
                continue
            try:
                data[attr] = attr_type(value)
            except Exception:
                logger.warning("invalid value for key %s on %s, using default", attr, type(self).__name__)
                if not field.is_required():
                    data[attr] = field.get_default(call_default_factory=True)
                elif attr_type is dict:
                    data[attr] = {}
                else:
                    data[attr] = _SIMPLE_DEFAULTS[attr_type]
        super().__init__(**data)

    @classmethod
    def from_record(cls, record: Any):
        if isinstance(record, Row):
            return cls(**record._asdict())
        if isinstance(record, dict):
            return cls(**record)
        if hasattr(record, "__table__"):
            return cls(**{c.name: getattr(record, c.name) for c in record.__table__.columns})
        raise ValueError(f"Invalid record type: {type(record)}")
