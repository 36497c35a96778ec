"""Base model class for fluentquery value objects with serialization support."""

from typing import Any, Dict
from pydantic import BaseModel, ConfigDict


class FluentBaseModel(BaseModel):
    """Base model for fluentquery value objects.

    Provides ``to_dict()`` for serialization (pagination descriptors are
    usually handed straight to a JSON response).
    """
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        use_enum_values=True,
        validate_assignment=True
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary for serialization.

        Nested models are converted recursively. Row objects in ``data``
        that are not models or mappings are passed through untouched.
        """
        data = self.model_dump(by_alias=False)

        def convert_nested(obj):
            if isinstance(obj, FluentBaseModel):
                return obj.to_dict()
            elif isinstance(obj, dict):
                return {k: convert_nested(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_nested(item) for item in obj]
            elif hasattr(obj, '_asdict'):  # SQLAlchemy Row
                return dict(obj._asdict())
            return obj

        return convert_nested(data)
