# app/crud/__init__.py

from .crud_schedule import schedule, special_period
from .gift_code_crud import gift_code_crud
from .ticket_crud import ticket_crud
