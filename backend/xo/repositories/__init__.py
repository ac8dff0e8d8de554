from .prediction_repository import PredictionRepository
from .types import ViewName, ViewSnapshot

__all__ = ["PredictionRepository", "ViewName", "ViewSnapshot"]
