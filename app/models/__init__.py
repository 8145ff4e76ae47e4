# app/models/__init__.py
# Import all models so Base.metadata knows every table (Alembic, tests).

from app.db.base_class import Base
from app.models.ticket import Ticket
from app.models.gift_code import GiftCode
from app.models.schedule import Schedule
from app.models.special_period import SpecialPeriod
from app.models.gift_code_purchase import GiftCodePurchase
