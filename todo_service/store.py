import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError, OperationalError, InterfaceError
from sqlalchemy.orm import Session, sessionmaker
from typing import Mapping, Optional, Sequence, Union

from todo_service import models, schemas
from todo_service.config import Settings
from todo_service.database import Base, make_engine
from todo_service.errors import (
    NotFoundError,
    StoreConnectionError,
    TaskStoreError,
    UnclassifiedStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SAMPLE_TITLES = (
    "Aprender a desplegar en Railway",
    "Configurar MySQL en la nube",
    "Crear API REST con Express",
    "Conectar React con backend remoto",
)


def _translate(exc: SQLAlchemyError) -> TaskStoreError:
    """Map a SQLAlchemy failure onto the store's error types"""
    if isinstance(exc, (OperationalError, InterfaceError)) or getattr(exc, "connection_invalidated", False):
        return StoreConnectionError()
    return UnclassifiedStoreError()


class TaskStore:
    """
    CRUD over the ``tasks`` table.

    Every call checks a session out of the engine's pool and returns it before
    returning. Multi-statement operations (insert then re-select, check then
    update) are not wrapped in a transaction beyond what each statement gives;
    a row that disappears between steps surfaces as NotFoundError.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "TaskStore":
        return cls(make_engine(settings))

    def _session(self) -> Session:
        return self._session_factory()

    def initialize(self, seed: bool = True) -> bool:
        """
        Make sure the database answers and the ``tasks`` table exists.

        Returns True when the table had to be created. Sample rows are only
        inserted into a freshly created table.

        Raises:
            StoreConnectionError: the database is unreachable
        """
        try:
            self.ping()
            created = not inspect(self.engine).has_table(models.Task.__tablename__)
            Base.metadata.create_all(bind=self.engine, tables=[models.Task.__table__])
        except StoreConnectionError:
            logger.error(f"Could not connect to database at {self.engine.url!r}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error creating database tables: {str(e)}")
            raise _translate(e) from e

        if created:
            logger.info("Table 'tasks' created")
            if seed:
                self.seed_sample_data()
        else:
            logger.info("Table 'tasks' found")
        return created

    def seed_sample_data(self, titles: Sequence[str] = SAMPLE_TITLES) -> int:
        """Insert each sample title that is not already present"""
        db = self._session()
        inserted = 0
        try:
            for title in titles:
                exists = db.query(models.Task.id).filter(models.Task.title == title).first()
                if exists is None:
                    now = models.utcnow()
                    db.add(models.Task(title=title, completed=False, created_at=now, updated_at=now))
                    inserted += 1
            db.commit()
            logger.info(f"Inserted {inserted} sample tasks")
            return inserted
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error inserting sample tasks: {str(e)}")
            raise _translate(e) from e
        finally:
            db.close()

    def ping(self) -> None:
        """Run a trivial query"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database ping failed: {str(e)}")
            raise _translate(e) from e

    def dispose(self) -> None:
        self.engine.dispose()

    def list_all(self) -> list[schemas.Task]:
        """Get all tasks, newest first"""
        db = self._session()
        try:
            rows = (
                db.query(models.Task)
                .order_by(models.Task.created_at.desc(), models.Task.id.desc())
                .all()
            )
            logger.info(f"Fetched {len(rows)} tasks")
            return [schemas.Task.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching tasks: {str(e)}")
            raise _translate(e) from e
        finally:
            db.close()

    def get_by_id(self, task_id: int) -> Optional[schemas.Task]:
        """Get a single task by ID, None if it does not exist"""
        db = self._session()
        try:
            row = db.query(models.Task).filter(models.Task.id == task_id).first()
            return schemas.Task.model_validate(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error fetching task {task_id}: {str(e)}")
            raise _translate(e) from e
        finally:
            db.close()

    def create(self, title: str) -> schemas.Task:
        """Create a new task from a title"""
        clean_title = schemas.normalize_title(title)
        db = self._session()
        try:
            now = models.utcnow()
            db_task = models.Task(title=clean_title, completed=False, created_at=now, updated_at=now)
            db.add(db_task)
            db.commit()
            db.refresh(db_task)
            logger.info(f"Created task with ID: {db_task.id}")
            return schemas.Task.model_validate(db_task)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating task: {str(e)}")
            raise _translate(e) from e
        finally:
            db.close()

    def update(
        self,
        task_id: int,
        patch: Union[schemas.TaskPatch, Mapping[str, object]]
    ) -> schemas.Task:
        """
        Apply the populated fields of ``patch`` in a single UPDATE.

        Raises:
            ValidationError: unknown field or invalid title
            NotFoundError: no task with ``task_id``
        """
        if not isinstance(patch, schemas.TaskPatch):
            unknown = set(patch) - set(schemas.UPDATABLE_FIELDS)
            if unknown:
                raise ValidationError(f"Campos no permitidos: {', '.join(sorted(unknown))}")
            patch = schemas.TaskPatch(
                title=schemas.normalize_title(patch["title"]) if patch.get("title") is not None else None,
                completed=schemas.is_truthy(patch["completed"]) if patch.get("completed") is not None else None,
            )
        values = patch.to_values()

        db = self._session()
        try:
            if values:
                values["updated_at"] = models.utcnow()
                matched = (
                    db.query(models.Task)
                    .filter(models.Task.id == task_id)
                    .update(values, synchronize_session=False)
                )
                db.commit()
                if matched == 0:
                    raise NotFoundError(task_id)

            db_task = db.query(models.Task).filter(models.Task.id == task_id).first()
            if db_task is None:
                raise NotFoundError(task_id)
            logger.info(f"Updated task with ID: {task_id} fields={sorted(values)}")
            return schemas.Task.model_validate(db_task)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error updating task {task_id}: {str(e)}")
            raise _translate(e) from e
        finally:
            db.close()

    def delete(self, task_id: int) -> schemas.Task:
        """Delete a task and return it as it was"""
        db = self._session()
        try:
            db_task = db.query(models.Task).filter(models.Task.id == task_id).first()
            if db_task is None:
                raise NotFoundError(task_id)
            snapshot = schemas.Task.model_validate(db_task)

            deleted = (
                db.query(models.Task)
                .filter(models.Task.id == task_id)
                .delete(synchronize_session=False)
            )
            db.commit()
            if deleted == 0:
                raise NotFoundError(task_id)
            logger.info(f"Deleted task with ID: {task_id} ('{snapshot.title}')")
            return snapshot
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error deleting task {task_id}: {str(e)}")
            raise _translate(e) from e
        finally:
            db.close()
