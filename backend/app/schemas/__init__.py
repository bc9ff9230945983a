"""Pydantic schemas for the Leasehold API."""

from app.schemas.base import *
from app.schemas.auth import *
from app.schemas.lease import *
