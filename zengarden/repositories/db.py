import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import Float, ForeignKey, Integer, String, UniqueConstraint, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .entities import (
    GardenEntity,
    InventoryEntity,
    InventoryItemEntity,
    PlacedItemEntity,
    PlotEntity,
    StoreEntity,
)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class InventoryRow(Base):
    __tablename__ = "inventories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    gold: Mapped[int] = mapped_column(Integer, default=0)

    def to_entity(self) -> InventoryEntity:
        return InventoryEntity(id=self.id, owner=self.owner, gold=self.gold)


class StoreRow(Base):
    __tablename__ = "stores"
    __table_args__ = (UniqueConstraint("owner", "store_id", name="uq_store_owner_store_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner: Mapped[str] = mapped_column(String(64), index=True)
    store_id: Mapped[int] = mapped_column(Integer)
    store_name: Mapped[str] = mapped_column(String(128), default="")
    buy_multiplier: Mapped[float] = mapped_column(Float, default=2)
    sell_multiplier: Mapped[float] = mapped_column(Float, default=1)
    upgrade_multiplier: Mapped[float] = mapped_column(Float, default=1)
    restock_time: Mapped[float] = mapped_column(Float, default=0)
    restock_interval: Mapped[float] = mapped_column(Float, default=300)

    def to_entity(self) -> StoreEntity:
        return StoreEntity(
            id=self.id,
            owner=self.owner,
            store_id=self.store_id,
            store_name=self.store_name,
            buy_multiplier=self.buy_multiplier,
            sell_multiplier=self.sell_multiplier,
            upgrade_multiplier=self.upgrade_multiplier,
            restock_time=self.restock_time,
            restock_interval=self.restock_interval,
        )


class InventoryItemRow(Base):
    """An item stack. owner is an inventory id or a store id."""
    __tablename__ = "inventory_items"
    __table_args__ = (UniqueConstraint("owner", "identifier", name="uq_inventory_item_owner_identifier"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner: Mapped[str] = mapped_column(String(36), index=True)
    identifier: Mapped[str] = mapped_column(String(32))
    quantity: Mapped[int] = mapped_column(Integer)

    def to_entity(self) -> InventoryItemEntity:
        return InventoryItemEntity(id=self.id, owner=self.owner, identifier=self.identifier, quantity=self.quantity)


class GardenRow(Base):
    __tablename__ = "gardens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    rows: Mapped[int] = mapped_column(Integer)
    cols: Mapped[int] = mapped_column(Integer)

    def to_entity(self) -> GardenEntity:
        return GardenEntity(id=self.id, owner=self.owner, rows=self.rows, cols=self.cols)


class PlotRow(Base):
    __tablename__ = "plots"
    __table_args__ = (UniqueConstraint("owner", "row_index", "col_index", name="uq_plot_owner_position"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner: Mapped[str] = mapped_column(ForeignKey("gardens.id", ondelete="CASCADE"), index=True)
    row_index: Mapped[int] = mapped_column(Integer)
    col_index: Mapped[int] = mapped_column(Integer)
    plant_time: Mapped[float] = mapped_column(Float, default=0)

    def to_entity(self) -> PlotEntity:
        return PlotEntity(id=self.id, owner=self.owner, row_index=self.row_index, col_index=self.col_index,
                          plant_time=self.plant_time)


class PlacedItemRow(Base):
    """The single item occupying a plot. owner is the plot id."""
    __tablename__ = "placed_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner: Mapped[str] = mapped_column(ForeignKey("plots.id", ondelete="CASCADE"), unique=True, index=True)
    identifier: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(64), default="")

    def to_entity(self) -> PlacedItemEntity:
        return PlacedItemEntity(id=self.id, owner=self.owner, identifier=self.identifier, status=self.status)


# --- Engine / sessions ----------------------------------------------------------

def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Creates the engine and the schema.

    SQLite has no SELECT ... FOR UPDATE, so every SQLite transaction starts with
    BEGIN IMMEDIATE: the write lock is taken up front and concurrent read-modify-write
    sequences on the same database run one after another.
    """

    if not database_url.startswith("sqlite"):
        engine = create_engine(database_url, echo=echo, pool_pre_ping=True)
        Base.metadata.create_all(engine)
        return engine

    kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **kwargs)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Hand transaction control to the "begin" hook below.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker, session: Optional[Session] = None,
                  logger=None) -> Iterator[Session]:
    """
    Transaction boundary for repository calls.

    With a caller-supplied session the work joins the caller's transaction and the caller
    commits or rolls back. Without one, a new session is opened, committed on success, and
    rolled back on any exception before the exception propagates.
    """

    if session is not None:
        yield session
        return

    s: Session = session_factory()
    try:
        yield s
        s.commit()
    except Exception as e:
        s.rollback()
        if logger is not None:
            logger.log(f"Database transaction rolled back: {type(e).__name__}: {e}", "ERROR")
        raise
    finally:
        s.close()
