"""
Base repository class that provides a consistent interface for all data access operations.
"""

from typing import TypeVar, Generic, Type, Optional, Any, Dict, Union
from sqlalchemy.orm import Session
from sqlalchemy import and_
from pydantic import BaseModel
import logging

from ..errors import NotFoundError
from ..models.base import BaseModel as DBBaseModel

# Type variables for generic repository
T = TypeVar('T', bound=DBBaseModel)
CreateSchemaType = TypeVar('CreateSchemaType', bound=BaseModel)
UpdateSchemaType = TypeVar('UpdateSchemaType', bound=BaseModel)

logger = logging.getLogger(__name__)

class BaseRepository(Generic[T, CreateSchemaType, UpdateSchemaType]):
    """
    Base repository with common CRUD operations.

    Generic types:
    - T: Database model type
    - CreateSchemaType: Pydantic schema for creation
    - UpdateSchemaType: Pydantic schema for updates

    Repositories flush but never commit; the request's get_db() owns the
    transaction. Domain errors propagate untouched.
    """

    # Label used in NotFoundError messages ("Session not found")
    label: str = "Record"

    def __init__(self, model: Type[T]):
        """Initialize repository with a specific model."""
        self.model = model

    def get(self, db: Session, id: int) -> Optional[T]:
        """Get a single record by ID."""
        try:
            return db.get(self.model, id)
        except Exception as e:
            logger.error(f"Error getting {self.model.__name__} with id {id}: {e}")
            raise

    def get_or_raise(self, db: Session, id: int) -> T:
        """Get a single record by ID or raise NotFoundError."""
        obj = self.get(db, id)
        if obj is None:
            raise NotFoundError(f"{self.label} not found", {"id": id})
        return obj

    def create(self, db: Session, obj_in: Union[CreateSchemaType, dict]) -> T:
        """Create a new record in the database."""
        try:
            obj_data = self._filter_model_fields(self._to_dict(obj_in))
            db_obj = self.model(**obj_data)
            db.add(db_obj)
            db.flush()
            db.refresh(db_obj)
            logger.info(f"Created {self.model.__name__} with id {db_obj.id}")
            return db_obj
        except Exception as e:
            logger.error(f"Error creating {self.model.__name__}: {e}")
            db.rollback()
            raise

    def update(self, db: Session, db_obj: T, obj_in: Union[UpdateSchemaType, dict]) -> T:
        """Update an existing record; only fields present in obj_in are written."""
        try:
            update_data = self._filter_model_fields(self._to_dict(obj_in))
            for field, value in update_data.items():
                setattr(db_obj, field, value)
            db.add(db_obj)
            db.flush()
            db.refresh(db_obj)
            logger.info(f"Updated {self.model.__name__} with id {db_obj.id}")
            return db_obj
        except Exception as e:
            logger.error(f"Error updating {self.model.__name__} with id {db_obj.id}: {e}")
            db.rollback()
            raise

    def count(self, db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records with optional filtering."""
        try:
            return self._apply_filters(db.query(self.model), filters).count()
        except Exception as e:
            logger.error(f"Error counting {self.model.__name__}: {e}")
            raise

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if not filters:
            return query
        conditions = [
            getattr(self.model, field) == value
            for field, value in filters.items()
            if hasattr(self.model, field)
        ]
        return query.filter(and_(*conditions)) if conditions else query

    def _filter_model_fields(self, data: dict) -> dict:
        """Filter data to only include valid model fields."""
        cols = {c.key for c in self.model.__table__.columns}
        return {k: v for k, v in data.items() if k in cols}

    def _to_dict(self, obj: Any) -> dict:
        """Convert Pydantic model or dict to dictionary."""
        if hasattr(obj, "model_dump"):
            return obj.model_dump(exclude_unset=True)
        if isinstance(obj, dict):
            return obj
        raise TypeError(f"Unsupported input type for {self.model.__name__}: {type(obj)}")
