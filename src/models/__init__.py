# Import all models here to ensure proper initialization order

# First import the base model
from src.models.base import Base

# Then import all models that don't have relationships to other models
from src.models.community import Community

# Finally import models with relationships to each other
from src.models.pre_signed_transaction import PreSignedTransaction
from src.models.subscription import Subscription

# This ensures all models are loaded and SQLAlchemy can properly establish relationships
__all__ = [
    "Base",
    "Community",
    "PreSignedTransaction",
    "Subscription",
]
