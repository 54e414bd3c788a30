"""
Base Schema Classes for Pydantic Models

RULE: request schemas inherit from BaseRequestSchema, response schemas built
from service result objects inherit from BaseResponseSchema.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for response schemas.

    Usage:
        class InsuranceResponse(BaseResponseSchema):
            required: bool
            insurance_cost: float
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )


class BaseRequestSchema(BaseModel):
    """
    Base class for request/input schemas.

    Unknown fields are ignored for forward compatibility.
    """
    model_config = ConfigDict(
        extra='ignore',
        use_enum_values=True,
    )
