"""CRUD 基类：封装按主键读取、写入、软删除以及按键前缀批量删除。"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session

from app.packages.drive.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    # 带软删除过滤的基础查询
    def query(self, db: Session, *, include_deleted: bool = False) -> Query:
        query = db.query(self.model)
        if hasattr(self.model, "is_deleted") and not include_deleted:
            query = query.filter(self.model.is_deleted.is_(False))
        return query

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return self.query(db).filter(self.model.id == id).first()

    def list_all(self, db: Session, *, skip: int = 0, limit: Optional[int] = None) -> List[ModelType]:
        query = self.query(db).order_by(self.model.id.asc()).offset(skip)
        return query.limit(limit).all() if limit else query.all()

    def create(self, db: Session, values: Dict[str, Any], *, auto_commit: bool = True) -> ModelType:
        return self.save(db, self.model(**values), auto_commit=auto_commit)

    def save(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> ModelType:
        db.add(db_obj)
        if auto_commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def soft_delete(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> ModelType:
        """模型带 ``is_deleted`` 时只做标记，否则物理删除。"""
        if hasattr(db_obj, "is_deleted"):
            db_obj.is_deleted = True
            db.add(db_obj)
        else:
            db.delete(db_obj)
        if auto_commit:
            db.commit()
        return db_obj

    def delete_keys(
        self,
        db: Session,
        *,
        storage_id: int,
        key: str,
        recursive: bool,
        auto_commit: bool = True,
    ) -> int:
        """删除某存储源下指定键的记录；``recursive`` 时连同以该键为前缀的全部记录。

        仅适用于带 ``storage_id``/``key`` 列的模型，返回删除行数。
        """
        column = self.model.key
        query = self.query(db).filter(self.model.storage_id == storage_id)
        query = query.filter(column.startswith(key, autoescape=True) if recursive else column == key)
        removed = query.delete(synchronize_session=False)
        if auto_commit:
            db.commit()
        return int(removed or 0)
