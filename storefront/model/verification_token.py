from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field
from sqlalchemy import UniqueConstraint

from storefront.model.base import BaseModel


class VerificationToken(BaseModel, table=True):
    """Single-use token bound to an identifier (the user's email), e.g. password reset."""

    __tablename__ = "verification_token"

    identifier: str = Field(index=True)
    token: str = Field(index=True)
    expires: datetime = Field(
        sa_type=sa.DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("identifier", "token", name="uq_verification_token_identifier_token"),
    )
