"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from app.models.base import Base
from app.models.merchant import Merchant
from app.models.api_key import ApiKey
from app.models.transaction import Transaction

# Export all for convenience
__all__ = ["Base", "Merchant", "ApiKey", "Transaction"]
